import datetime

from sqlalchemy import Column, DateTime, Float, Integer, String, Text

from fleettrack.database import Base


class VehicleDB(Base):
    __tablename__ = "vehicles"

    id = Column(String, primary_key=True, index=True)
    plate = Column(String(20), unique=True, nullable=False)
    make = Column(String(100), default="")
    model = Column(String(100), default="")
    year = Column(Integer, nullable=True)
    # active, idle, maintenance, alert
    status = Column(String(20), default="idle", nullable=False)
    driver_name = Column(String(200), nullable=True)
    location = Column(Text, nullable=True)
    odometer = Column(Integer, default=0)
    # Last known position, both null while unknown
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)


class TripDB(Base):
    __tablename__ = "trips"

    id = Column(String, primary_key=True, index=True)
    vehicle_id = Column(String, index=True, nullable=False)
    vehicle_plate = Column(String(20), nullable=False)
    driver_name = Column(String(200), nullable=False)
    start_location = Column(Text, nullable=False)
    destination = Column(Text, nullable=True)
    end_location = Column(Text, nullable=True)
    purpose = Column(String(100), nullable=True)
    # active, completed
    status = Column(String(20), default="active", nullable=False, index=True)
    start_time = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)
    end_time = Column(DateTime, nullable=True)
    start_odometer = Column(Integer, nullable=True)
    end_odometer = Column(Integer, nullable=True)
    distance = Column(Integer, nullable=True)
    start_lat = Column(Float, nullable=True)
    start_lng = Column(Float, nullable=True)
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)
    dest_lat = Column(Float, nullable=True)
    dest_lng = Column(Float, nullable=True)
