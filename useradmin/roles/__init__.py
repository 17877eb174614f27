from useradmin.roles.service import RoleService

__all__ = ["RoleService"]
