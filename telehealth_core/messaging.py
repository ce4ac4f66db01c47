from __future__ import annotations

import logging
from dataclasses import dataclass

from .consultations import ConsultationLifecycle
from .errors import InvalidInputError, UnauthorizedError
from .models import EntityKind, Message, SenderType
from .transitions import new_id

logger = logging.getLogger(__name__)


@dataclass
class ConsultationChat:
    """Messages exchanged between the two participants of a consultation."""

    consultations: ConsultationLifecycle

    def send(self, consultation_id: str, sender_id: str, content: str) -> Message:
        consultation = self.consultations.get(consultation_id)
        if sender_id == consultation.patient_id:
            sender_type = SenderType.PATIENT
        elif sender_id == consultation.doctor_id:
            sender_type = SenderType.DOCTOR
        else:
            raise UnauthorizedError(
                f"{sender_id} is not a participant of consultation {consultation_id}."
            )
        text = (content or "").strip()
        if not text:
            raise InvalidInputError("Message content must not be empty.")

        recorder = self.consultations.recorder
        message = Message(
            id=new_id("MSG"),
            consultation_id=consultation_id,
            sender_id=sender_id,
            sender_type=sender_type,
            content=text,
            timestamp=recorder.clock(),
        )
        recorder.commit(
            EntityKind.MESSAGES,
            message.to_record(),
            action="MESSAGE_SENT",
            payload={"consultation_id": consultation_id, "sender_type": sender_type.value},
        )
        return message

    def messages(self, consultation_id: str) -> list[Message]:
        rows = self.consultations.recorder.store.find_all_by_index(
            EntityKind.MESSAGES, "consultation_id", consultation_id
        )
        return [Message.from_record(row) for row in rows]

    def mark_read(self, consultation_id: str, reader_id: str) -> int:
        """Mark the other participant's unread messages as read; returns how many changed."""
        recorder = self.consultations.recorder
        marked = 0
        for message in self.messages(consultation_id):
            if message.sender_id == reader_id or message.read:
                continue
            message.read = True
            recorder.commit(
                EntityKind.MESSAGES,
                message.to_record(),
                action="MESSAGE_READ",
                payload={"consultation_id": consultation_id, "reader_id": reader_id},
                publish=False,
            )
            marked += 1
        if marked:
            logger.info("Marked %s message(s) read in consultation %s", marked, consultation_id)
        return marked
