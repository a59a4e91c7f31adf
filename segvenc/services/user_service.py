"""
Internal user management within a company.
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from segvenc.exceptions import NotFoundError, UnauthorizedError, ValidationError
from segvenc.models import InternalUser, UserRole

logger = logging.getLogger(__name__)


def list_company_users(session: Session, company_id: int) -> List[InternalUser]:
    return session.query(InternalUser).filter(
        InternalUser.company_id == company_id
    ).order_by(InternalUser.role.asc(), InternalUser.id.asc()).all()


def change_user_role(session: Session, acting_user: InternalUser, target_user_id: int,
                     new_role: str) -> InternalUser:
    """
    Change the role of a user in the acting user's company.

    Rules: only admins change roles, only within their own company, never
    their own role, and only to 'admin' or 'user'.

    Raises:
        UnauthorizedError: Acting user is not an admin or targets themselves
        NotFoundError: Target user does not exist in the company
        ValidationError: Unknown role
    """
    if not acting_user or not acting_user.is_admin():
        raise UnauthorizedError("Apenas administradores podem alterar perfis.")

    if new_role not in {r.value for r in UserRole}:
        raise ValidationError(f"Perfil inválido: {new_role}")

    if acting_user.id == target_user_id:
        raise UnauthorizedError("Você não pode alterar o seu próprio perfil.")

    target = session.query(InternalUser).filter(
        InternalUser.id == target_user_id,
        InternalUser.company_id == acting_user.company_id,
    ).first()
    if not target:
        raise NotFoundError(f"Usuário {target_user_id} não encontrado")

    target.role = new_role
    session.flush()
    logger.info(f"User {acting_user.id} changed role of user {target.id} to {new_role}")
    return target
