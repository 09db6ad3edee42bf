"""
Campus Placement Portal
Interview-round attendance for campus placement drives.

Architecture:
- PostgreSQL: users, students, jobs, applications, rounds, sessions, attendance
- Signed QR tokens: stateless check-in codes, verified with HMAC-SHA256
- Attendance confirmation: re-validated and guarded by a UNIQUE constraint
"""

__version__ = "1.0.0"
