from pelangi.db.session import SessionLocal


# every request that needs the store gets its own session, and it always closes.
# Services never reach for a global handle; they receive this session.
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
