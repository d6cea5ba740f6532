from .users import User, UserRole
