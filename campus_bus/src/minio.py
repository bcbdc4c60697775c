from io import BytesIO
from minio import Minio
from campus_bus.src.constants import (
    MINIO_HOST,
    MINIO_PASSWORD,
    MINIO_PORT,
    MINIO_USERNAME,
)

# MinIO client instance
client: Minio = Minio(
    endpoint=f"{MINIO_HOST}:{MINIO_PORT}",
    access_key=MINIO_USERNAME,
    secret_key=MINIO_PASSWORD,
    secure=False,
)


def createBucket(bucketName: str) -> None:
    """
    Create a new bucket in MinIO, unless it already exists.

    Args:
        bucketName (str): The name of the bucket to create.
    """
    if not client.bucket_exists(bucketName):
        client.make_bucket(bucketName)


def deleteBucket(bucketName: str) -> None:
    """
    Delete a bucket and all its contents from MinIO.

    Args:
        bucketName (str): The name of the bucket to delete.

    Note:
        This will remove all objects inside the bucket before deleting it.
    """
    if not client.bucket_exists(bucketName):
        return
    objectsInBucket = client.list_objects(bucketName, recursive=True)
    for object in objectsInBucket:
        client.remove_object(bucketName, object.object_name)
    client.remove_bucket(bucketName)


def uploadBytes(bucketName: str, objectID: str, data: bytes, contentType: str) -> None:
    """
    Upload an in-memory file to MinIO.

    Args:
        bucketName (str): The name of the bucket where the file will be stored.
        objectID (str): The unique identifier (key) for the object in MinIO.
        data (bytes): The file content.
        contentType (str): MIME type stored with the object.

    Raises:
        S3Error: If the file cannot be uploaded.
    """
    client.put_object(
        bucketName, objectID, BytesIO(data), len(data), content_type=contentType
    )


def deleteFile(bucketName: str, objectID: str) -> None:
    """
    Delete a file from MinIO.

    Raises:
        S3Error: If the file cannot be deleted.
    """
    client.remove_object(bucketName, objectID)
