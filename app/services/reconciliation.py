"""Merge a freshly synchronized account and its products into local collections."""

from dataclasses import dataclass
from typing import Optional, Sequence

from app.schemas.account import Account, Product


@dataclass
class ReconciledCollections:
    """Accounts and products after a reconciliation."""

    accounts: list[Account]
    products: list[Product]


def same_account(existing: Account, synced: Account) -> bool:
    """Match by nickname, or by external id once both sides know it."""
    if existing.nickname == synced.nickname:
        return True
    return bool(synced.user_id) and existing.user_id == synced.user_id


def find_account_index(accounts: Sequence[Account], synced: Account) -> Optional[int]:
    """Index of the stored account ``synced`` replaces, or None."""
    for index, existing in enumerate(accounts):
        if same_account(existing, synced):
            return index
    return None


def stale_nicknames(previous: Optional[Account], synced: Account) -> set[str]:
    """Nicknames whose products a sync of ``synced`` replaces."""
    nicknames = {synced.nickname}
    if previous is not None:
        nicknames.add(previous.nickname)
    return nicknames


def reconcile_account(
    accounts: Sequence[Account],
    products: Sequence[Product],
    synced: Account,
    fetched_products: Optional[Sequence[Product]],
) -> ReconciledCollections:
    """Replace the matching account and all of its products.

    The matching account keeps its local id and takes every other field from
    ``synced``; without a match the account is appended. Products stored
    under the account's nickname are dropped and replaced by
    ``fetched_products``: listings removed on the marketplace disappear.

    Args:
        accounts: Stored accounts
        products: Stored products of all accounts
        synced: Account returned by a successful sync
        fetched_products: Products fetched in the same sync, or None when
            the product fetch failed and the stored ones must be kept

    Returns:
        New collections; the inputs are not modified
    """
    merged_accounts = list(accounts)
    index = find_account_index(merged_accounts, synced)
    previous = merged_accounts[index] if index is not None else None

    if previous is not None:
        merged_accounts[index] = synced.model_copy(update={"id": previous.id})
    else:
        merged_accounts.append(synced)

    nicknames = stale_nicknames(previous, synced)

    if fetched_products is None:
        rekeyed = [
            product.model_copy(update={"account": synced.nickname})
            if product.account in nicknames
            else product
            for product in products
        ]
        return ReconciledCollections(accounts=merged_accounts, products=rekeyed)

    incoming = [
        product.model_copy(update={"account": synced.nickname})
        for product in fetched_products
    ]
    incoming_ids = {product.id for product in incoming}

    kept = [
        product
        for product in products
        if product.account not in nicknames and product.id not in incoming_ids
    ]
    return ReconciledCollections(accounts=merged_accounts, products=kept + incoming)
