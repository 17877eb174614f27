from useradmin.users.service import UserService, generate_temporary_password

__all__ = ["UserService", "generate_temporary_password"]
