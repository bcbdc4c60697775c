import datetime, logging
from campus_bus.src.db import sessionMaker, OperatorToken, StudentToken
from sqlalchemy.orm import Session
from sqlalchemy import delete

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("Cleaner")


def removeExpiredTokens(session: Session, tokenModel) -> int:
    """Delete the expired tokens of one token table, returns the number removed."""
    currentTime = datetime.datetime.now(datetime.timezone.utc)
    result = session.execute(
        delete(tokenModel).where(tokenModel.expires_at < currentTime)
    )
    session.commit()
    deletedCount = result.rowcount
    logger.info(f"Removed {deletedCount} tokens from {tokenModel.__tablename__} table")
    return deletedCount


def main():
    try:
        with sessionMaker() as session:
            removeExpiredTokens(session, StudentToken)
            removeExpiredTokens(session, OperatorToken)
    except Exception:
        logger.exception("cleaner.py failed")


if __name__ == "__main__":
    main()
