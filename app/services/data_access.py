from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
from datetime import datetime, timedelta
from typing import List, Optional, Tuple, Union
import logging

from ..core.config import settings
from ..core.exceptions import (
    ConflictError, FetchError, MutationError, NotFoundError
)
from ..models.appointment import Appointment, AppointmentStatus
from ..models.department import Department
from ..models.doctor import Doctor
from ..models.user import User
from .time_slots import parse_iso

logger = logging.getLogger(__name__)

Timestamp = Union[str, datetime]

SLOT_TAKEN_MESSAGE = "This time slot is no longer available"


class DataAccess:
    """Queries and mutations for departments, doctors and appointments.

    Every read failure surfaces as FetchError and every write failure as
    MutationError; callers never see raw SQLAlchemy exceptions.
    """

    def __init__(self, db: Session):
        self.db = db

    # Departments

    def list_departments(self) -> List[Department]:
        """Active departments ordered by name."""
        try:
            return (
                self.db.query(Department)
                .filter(Department.is_active == True)
                .order_by(Department.name)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to list departments: {str(e)}")
            raise FetchError("Failed to load departments")

    def get_department(self, department_id: int) -> Department:
        try:
            department = self.db.query(Department).filter(
                Department.id == department_id
            ).first()
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch department {department_id}: {str(e)}")
            raise FetchError("Failed to load department")

        if not department:
            raise NotFoundError("Department not found")
        return department

    # Doctors

    def list_doctors(
        self,
        department_id: Optional[int] = None,
        search: Optional[str] = None
    ) -> List[Doctor]:
        """Active doctors, newest first, with department and user loaded."""
        try:
            query = (
                self.db.query(Doctor)
                .join(User, Doctor.user_id == User.id)
                .options(joinedload(Doctor.department), joinedload(Doctor.user))
                .filter(Doctor.is_active == True)
            )

            if department_id:
                query = query.filter(Doctor.department_id == department_id)

            if search and search.strip():
                pattern = f"%{search.strip()}%"
                query = query.filter(or_(
                    Doctor.specialization.ilike(pattern),
                    User.full_name.ilike(pattern)
                ))

            return query.order_by(Doctor.created_at.desc(), Doctor.id.desc()).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to list doctors: {str(e)}")
            raise FetchError("Failed to load doctors")

    def get_doctor(self, doctor_id: int) -> Doctor:
        try:
            doctor = (
                self.db.query(Doctor)
                .options(joinedload(Doctor.department), joinedload(Doctor.user))
                .filter(Doctor.id == doctor_id)
                .first()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch doctor {doctor_id}: {str(e)}")
            raise FetchError("Failed to load doctor")

        if not doctor:
            raise NotFoundError("Doctor not found")
        return doctor

    def list_doctor_appointments(
        self,
        doctor_id: int,
        start_date: Timestamp,
        end_date: Timestamp
    ) -> List[Appointment]:
        """Non-cancelled appointments for a doctor starting within the range."""
        try:
            return (
                self.db.query(Appointment)
                .filter(
                    Appointment.doctor_id == doctor_id,
                    Appointment.start_time >= parse_iso(start_date),
                    Appointment.start_time <= parse_iso(end_date),
                    Appointment.status != AppointmentStatus.CANCELLED
                )
                .order_by(Appointment.start_time)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to list appointments for doctor {doctor_id}: {str(e)}")
            raise FetchError("Failed to load appointments")

    # Appointments

    def get_appointment(self, appointment_id: int) -> Appointment:
        try:
            appointment = self.db.query(Appointment).filter(
                Appointment.id == appointment_id
            ).first()
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch appointment {appointment_id}: {str(e)}")
            raise FetchError("Failed to load appointment")

        if not appointment:
            raise NotFoundError("Appointment not found")
        return appointment

    def list_patient_appointments(
        self,
        patient_id: int,
        status: Optional[AppointmentStatus] = None,
        start_date: Optional[Timestamp] = None,
        end_date: Optional[Timestamp] = None,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[Appointment], int]:
        """One page of a patient's appointments, soonest first, plus the total."""
        try:
            query = self.db.query(Appointment).filter(
                Appointment.patient_id == patient_id
            )

            if status:
                query = query.filter(Appointment.status == status)
            if start_date:
                query = query.filter(Appointment.start_time >= parse_iso(start_date))
            if end_date:
                query = query.filter(Appointment.start_time <= parse_iso(end_date))

            total = query.count()
            appointments = (
                query.order_by(Appointment.start_time)
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            return appointments, total
        except SQLAlchemyError as e:
            logger.error(f"Failed to list appointments for patient {patient_id}: {str(e)}")
            raise FetchError("Failed to fetch appointments")

    def create_appointment(
        self,
        doctor_id: int,
        patient_id: int,
        start_time: Timestamp,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        department_id: Optional[int] = None
    ) -> Appointment:
        """Book a slot with a doctor."""
        doctor = self.get_doctor(doctor_id)
        if not doctor.is_active:
            raise MutationError("Doctor is not currently accepting appointments")

        try:
            start = parse_iso(start_time)
        except (TypeError, ValueError):
            raise MutationError("Invalid start time")

        self._ensure_slot_free(doctor_id, start)

        appointment = Appointment(
            patient_id=patient_id,
            doctor_id=doctor_id,
            department_id=department_id or doctor.department_id,
            start_time=start,
            end_time=start + timedelta(minutes=settings.SLOT_DURATION_MINUTES),
            status=AppointmentStatus.SCHEDULED,
            reason=reason,
            notes=notes or None
        )

        try:
            self.db.add(appointment)
            self.db.commit()
            self.db.refresh(appointment)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Appointment creation error: {str(e)}")
            raise MutationError("Failed to create appointment")

        logger.info(f"Appointment created: {appointment.id} by patient: {patient_id}")
        return appointment

    def cancel_appointment(
        self,
        appointment_id: int,
        reason: str,
        cancelled_by: Optional[int] = None
    ) -> Appointment:
        appointment = self.get_appointment(appointment_id)

        if appointment.status == AppointmentStatus.CANCELLED:
            raise MutationError("Appointment is already cancelled")

        appointment.status = AppointmentStatus.CANCELLED
        appointment.cancellation_reason = reason
        appointment.cancelled_at = datetime.utcnow()
        appointment.cancelled_by = cancelled_by

        try:
            self.db.commit()
            self.db.refresh(appointment)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to cancel appointment {appointment_id}: {str(e)}")
            raise MutationError("Failed to cancel appointment")

        logger.info(f"Appointment cancelled: {appointment_id}, reason: {reason}")
        return appointment

    def reschedule_appointment(
        self,
        appointment_id: int,
        new_start_time: Timestamp
    ) -> Appointment:
        appointment = self.get_appointment(appointment_id)

        if appointment.status == AppointmentStatus.CANCELLED:
            raise MutationError("Cannot reschedule a cancelled appointment")
        if appointment.status == AppointmentStatus.COMPLETED:
            raise MutationError("Cannot reschedule a completed appointment")

        try:
            start = parse_iso(new_start_time)
        except (TypeError, ValueError):
            raise MutationError("Invalid start time")

        self._ensure_slot_free(appointment.doctor_id, start, exclude_id=appointment.id)

        appointment.start_time = start
        appointment.end_time = start + timedelta(minutes=settings.SLOT_DURATION_MINUTES)
        appointment.status = AppointmentStatus.SCHEDULED

        try:
            self.db.commit()
            self.db.refresh(appointment)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to reschedule appointment {appointment_id}: {str(e)}")
            raise MutationError("Failed to reschedule appointment")

        logger.info(f"Appointment rescheduled: {appointment_id}")
        return appointment

    def complete_appointment(self, appointment_id: int) -> Appointment:
        """Mark a scheduled appointment as completed (doctor/admin action)."""
        appointment = self.get_appointment(appointment_id)

        if appointment.status != AppointmentStatus.SCHEDULED:
            raise MutationError(
                f"Cannot complete a {appointment.status.value} appointment"
            )

        appointment.status = AppointmentStatus.COMPLETED

        try:
            self.db.commit()
            self.db.refresh(appointment)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to complete appointment {appointment_id}: {str(e)}")
            raise MutationError("Failed to complete appointment")

        logger.info(f"Appointment completed: {appointment_id}")
        return appointment

    def _ensure_slot_free(
        self,
        doctor_id: int,
        start: datetime,
        exclude_id: Optional[int] = None
    ):
        """Reject a start time already held by a non-cancelled appointment."""
        try:
            query = self.db.query(Appointment).filter(
                Appointment.doctor_id == doctor_id,
                Appointment.start_time == start,
                Appointment.status != AppointmentStatus.CANCELLED
            )
            if exclude_id is not None:
                query = query.filter(Appointment.id != exclude_id)
            taken = query.first()
        except SQLAlchemyError as e:
            logger.error(f"Slot check failed for doctor {doctor_id}: {str(e)}")
            raise MutationError("Failed to create appointment")

        if taken:
            logger.warning(f"Slot conflict for doctor {doctor_id} at {start.isoformat()}")
            raise ConflictError(SLOT_TAKEN_MESSAGE)
