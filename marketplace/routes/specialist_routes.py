from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.routes.appointment_routes import as_http_error, build_engine, ensure_database_ready
from marketplace.scheduling.errors import SchedulingError

router = APIRouter(tags=['specialists'])


class AvailabilityResponse(BaseModel):
    date: date
    specialist_id: int = Field(serialization_alias='specialistId')
    available_slots: list[str] = Field(serialization_alias='availableSlots')

    class Config:
        from_attributes = True


@router.get('/{specialist_id}/availability', response_model=AvailabilityResponse)
def get_specialist_availability(
    specialist_id: int,
    slot_date: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        availability = build_engine(db).get_availability(specialist_id, slot_date)
    except SchedulingError as exc:
        raise as_http_error(exc) from exc

    return AvailabilityResponse.model_validate(availability)
