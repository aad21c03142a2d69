"""Utility for resolving account names to IDs."""

from fundledger.domain.account import AccountService
from fundledger.domain.errors import NotFoundError, account_name_not_found, account_not_found


def resolve_account(account_service: AccountService, account: str | int) -> int:
    """Resolve account name or ID to account ID.

    A numeric string is tried as an ID first and then as a name, so an
    account literally named "2024" still resolves.

    Raises:
        NotFoundError: If account is not found
    """
    if isinstance(account, int):
        if account_service.get_account(account) is None:
            raise NotFoundError(account_not_found(account))
        return account

    try:
        account_id = int(account)
    except (ValueError, TypeError):
        account_id = None

    if account_id is not None and account_service.get_account(account_id) is not None:
        return account_id

    match = account_service.get_account_by_name(account)
    if match is None:
        if account_id is not None:
            raise NotFoundError(account_not_found(account_id))
        raise NotFoundError(account_name_not_found(account))
    return match.id
