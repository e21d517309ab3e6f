from .gateway import BaseCalendarGateway, CalendarError, get_calendar_gateway

__all__ = ["BaseCalendarGateway", "CalendarError", "get_calendar_gateway"]
