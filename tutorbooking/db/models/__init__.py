from .tutor import Tutor
from .availability_block import AvailabilityBlock
from .call_type import CallType
from .call_slot import CallSlot, SlotStatus
from .booking import Booking, BookingStatus
from .student import Student
from .tutor_session import TutorSession
from .tutor_assignment import TutorAssignment, DEFAULT_ASSIGNMENT_ROLE
