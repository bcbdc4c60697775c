from fastapi.security import HTTPBearer

# Define HTTP Bearer authentication schemes for different user roles
bearer_student = HTTPBearer(scheme_name="Student HTTPBearer")
bearer_operator = HTTPBearer(scheme_name="Operator HTTPBearer")
