from models.attendance import AttendanceRecord

__all__ = ["AttendanceRecord"]
