"""
Services Package
================

Business logic layer for Tujifund.

All financial, inventory and cart changes are handled here.
Routes should call these services, not manipulate models directly.
"""

from tujifund.services.wallet_service import (
    create_wallet_for_user,
    create_wallet_for_chama,
    get_wallet,
    get_balance,
    debit,
    credit,
    deposit,
    withdraw,
    transfer,
    contribute,
    list_transactions,
    WalletError,
    WalletNotFoundError,
    InsufficientFundsError,
    InvalidAmountError
)

from tujifund.services.inventory_service import (
    get_item,
    reserve_and_decrement,
    create_item,
    update_item,
    list_active_items,
    list_seller_items,
    InventoryError,
    ItemNotFoundError,
    InsufficientStockError
)

from tujifund.services.cart_service import (
    add_or_increment,
    set_quantity,
    remove,
    remove_entry,
    list_for_buyer,
    clear,
    get_cart_summary,
    CartError,
    CartEntryNotFoundError
)

from tujifund.services.checkout_service import (
    checkout,
    CheckoutError,
    EmptyCartError,
    CartChangedError,
    CheckoutTimeoutError,
    CheckoutInternalError
)

from tujifund.services.authorization_service import (
    is_chama_member,
    is_chama_admin,
    can_contribute,
    can_view_chama_wallet,
    require_authorization,
    AuthorizationError
)

from tujifund.services.chama_service import (
    create_chama,
    add_member,
    list_user_chamas,
    ChamaError
)
