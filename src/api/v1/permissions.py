"""Custom DRF permissions for the RAVITO API."""
from rest_framework.permissions import BasePermission


class IsPlatformAdmin(BasePermission):
    """Allow only platform administrators."""

    message = "Acces reserve aux administrateurs."

    def has_permission(self, request, view):
        user = request.user
        return bool(
            user
            and user.is_authenticated
            and (getattr(user, "role", None) == "admin" or user.is_superuser)
        )


class IsSalesRep(BasePermission):
    """Allow users with the sales_rep role and an active representative record."""

    message = "Acces reserve aux commerciaux."

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated and getattr(user, "role", None) == "sales_rep"):
            return False
        from commissions.services import get_sales_rep_for_user

        rep = get_sales_rep_for_user(user)
        if rep is None:
            return False
        # Views read the resolved representative from the request.
        request.sales_rep = rep
        return True


class IsEstablishment(BasePermission):
    """Allow CHR clients and depots that belong to an active organization."""

    message = "Acces reserve aux etablissements rattaches a une organisation."

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        if getattr(user, "role", None) not in ("client", "supplier"):
            return False
        from organizations.services import get_user_organization

        organization = get_user_organization(user)
        if organization is None:
            return False
        request.organization = organization
        return True


class IsApprovedUser(BasePermission):
    """Reject accounts still waiting for (or refused) admin approval."""

    message = "Votre compte est en attente de validation."

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and (user.is_approved or user.is_superuser))
