# guide_booking/db/init_db.py
# importing the model modules registers every table on Base.metadata
from guide_booking.db.base import Base, engine
from guide_booking.db.models import booking, customer, destination, guide, notification, review, user  # noqa: F401


def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)
