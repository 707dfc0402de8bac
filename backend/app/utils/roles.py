from fastapi import Depends, HTTPException
from .dependencies import get_current_user


def _roles_required(*allowed_roles: str):
    def check_role(user=Depends(get_current_user)):
        if user.get("role") not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Insufficient permissions. Required role: {' or '.join(allowed_roles)}",
            )
        return user
    return check_role


hr_or_admin = _roles_required("HR", "Admin")
interviewer_only = _roles_required("Interviewer")
admin_only = _roles_required("Admin")
