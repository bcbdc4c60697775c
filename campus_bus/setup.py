import argparse
from http import HTTPStatus
from requests import post
from datetime import datetime, timedelta

from campus_bus.src import argon2
from campus_bus.src.constants import INCIDENT_PICTURES, TMZ_SECONDARY
from campus_bus.src.minio import createBucket, deleteBucket
from campus_bus.src.urls import (
    URL_OPERATOR_TOKEN,
    URL_OPERATOR_TRIP,
    URL_STUDENT_ACCOUNT,
)
from campus_bus.src.db import Operator, sessionMaker, engine, ORMbase


# ----------------------------------- Project Setup -------------------------------------------#
def removeTables():
    ORMbase.metadata.drop_all(engine)
    print("* All tables deleted")
    deleteBucket(INCIDENT_PICTURES)
    print("* All buckets deleted")


def createTables():
    ORMbase.metadata.create_all(engine)
    print("* All tables created")
    createBucket(INCIDENT_PICTURES)
    print("* All buckets created")


def initDB():
    session = sessionMaker()
    password = argon2.makePassword("password")
    admin = Operator(
        employee_id="admin",
        password=password,
        full_name="Transport office",
        manage_trip=True,
    )
    driver = Operator(
        employee_id="driver",
        password=password,
        full_name="Campus bus driver",
        manage_trip=False,
    )
    session.add_all([admin, driver])
    session.commit()
    print("* Initialization completed")
    session.close()


def POST(URL: str, header: dict = {}, status_code: int = HTTPStatus.CREATED, **kwargs):
    response = post(URL, headers=header, **kwargs)
    assert response.status_code == status_code, response.text
    return response


def testDB():
    # Base URL
    BASE_URL = "http://127.0.0.1:8080"

    # Create Operator Token
    credentials = {"employeeId": "admin", "password": "password"}
    response = POST(BASE_URL + "/operator" + URL_OPERATOR_TOKEN, json=credentials)
    accessToken = {"Authorization": "Bearer " + response.json()["token"]}
    print("* Operator token created")

    # Trips for the coming week, both directions
    today = datetime.now(TMZ_SECONDARY).date()
    for day in range(1, 8):
        tripDate = (today + timedelta(days=day)).isoformat()
        for route, destination, departure in (
            ("CAMPUS_TO_CITY", "Raja Park", "08:30"),
            ("CAMPUS_TO_CITY", "Raja Park", "17:30"),
            ("CITY_TO_CAMPUS", "Campus", "12:00"),
            ("CITY_TO_CAMPUS", "Campus", "21:00"),
        ):
            tripData = {
                "route": route,
                "destination": destination,
                "busNumber": "RJ14 PA 1234",
                "tripDate": tripDate,
                "departureTime": departure,
                "capacity": 40,
                "facultyReserved": 4,
            }
            POST(BASE_URL + "/operator" + URL_OPERATOR_TRIP, accessToken, json=tripData)
    print("* Created trips")

    # Test student
    studentData = {
        "email": "student@lnmiit.ac.in",
        "name": "Test student",
        "password": "password",
        "room": "BH1-101",
        "phone": "+919999999999",
    }
    POST(BASE_URL + "/student" + URL_STUDENT_ACCOUNT, json=studentData)
    print("* Created test student")


# Setup database
if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("-rm", action="store_true", help="remove tables")
    parser.add_argument("-cr", action="store_true", help="create tables")
    parser.add_argument("-init", action="store_true", help="initialize DB")
    parser.add_argument("-test", action="store_true", help="add test data")
    args = parser.parse_args()

    if args.cr:
        createTables()
    if args.init:
        initDB()
    if args.test:
        testDB()
    if args.rm:
        removeTables()
