from fastapi import FastAPI
from campus_bus.api import (
    student_account,
    student_token,
    operator_token,
    trip,
    booking,
    qr,
    incident_report,
    trip_trace,
)
from campus_bus.src.enums import AppID


# ------------------------------------------------------
# Create separate FastAPI apps for each user domain
# ------------------------------------------------------
app_student = FastAPI(title="Student APP")
app_operator = FastAPI(title="Operator APP")

# Tag each app with its AppID
app_student.state.id = AppID.STUDENT
app_operator.state.id = AppID.OPERATOR


# ------------------------------------------------------
# Student routers
# ------------------------------------------------------
app_student.include_router(student_account.route_student)
app_student.include_router(student_token.route_student)
app_student.include_router(trip.route_student)
app_student.include_router(booking.route_student)


# ------------------------------------------------------
# Operator routers
# ------------------------------------------------------
app_operator.include_router(operator_token.route_operator)
app_operator.include_router(trip.route_operator)
app_operator.include_router(booking.route_operator)
app_operator.include_router(qr.route_operator)
app_operator.include_router(incident_report.route_operator)
app_operator.include_router(trip_trace.route_operator)
