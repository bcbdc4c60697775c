"""
API Endpoint URL Constants

This module defines the URL paths used throughout the application.

The paths are relative to the sub-application that serves them,
`/student` for the student app and `/operator` for the operator app.
"""

# -------------------------------
# Student app
# -------------------------------
URL_STUDENT_ACCOUNT = "/auth/register"
URL_STUDENT_TOKEN = "/auth/login"
URL_STUDENT_LOGOUT = "/auth/token"
URL_STUDENT_PROFILE = "/profile"
URL_TRIP_AVAILABLE = "/trips/available"
URL_BOOKING = "/bookings"
URL_BOOKING_ITEM = "/bookings/{booking_id}"
URL_BOOKING_HISTORY = "/bookings/history"

# -------------------------------
# Operator app
# -------------------------------
URL_OPERATOR_TOKEN = "/login"
URL_OPERATOR_TRIP = "/trips"
URL_OPERATOR_TRIP_START = "/trips/start"
URL_OPERATOR_PASSENGER = "/trips/{trip_id}/passengers"
URL_OPERATOR_BOOKING_ITEM = "/bookings/{booking_id}"
URL_QR_VALIDATE = "/qr/validate"
URL_INCIDENT_REPORT = "/reports"
URL_TRIP_TRACE = "/gps"
