from fastapi import HTTPException


def validate_coordinates(lat: float, lng: float, name: str) -> None:
    if not (-90 <= lat <= 90):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {name} latitude: {lat}. Must be between -90 and 90.",
        )
    if not (-180 <= lng <= 180):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {name} longitude: {lng}. Must be between -180 and 180.",
        )
