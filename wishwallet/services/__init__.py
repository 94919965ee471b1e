"""
Services Package
================

Business logic layer for WishWallet.

All claim, wallet, payment and authorization operations are handled here.
Routes should call these services, not manipulate models directly.
"""

from wishwallet.services.wallet_service import (
    get_or_create_wallet,
    record_claim_payment,
    contribute_to_goal,
    available_balance,
    recalculate_wallet_balance,
    get_wallet_summary,
    WalletError,
    InsufficientBalanceError,
    InvalidAmountError,
    DuplicateTransactionError
)

from wishwallet.services.authorization_service import (
    can_edit_wishlist,
    can_claim_item,
    can_manage_claim,
    can_pay_claim,
    can_request_payout,
    can_manage_payout,
    is_admin,
    require_authorization,
    AuthorizationError
)

from wishwallet.services.claims_service import (
    create_claim,
    record_guest_payment,
    fetch_user_claims,
    update_claim_status,
    update_claim,
    save_claim_note,
    delete_claim,
    get_user_claim_stats,
    payment_summary,
    expire_stale_claims,
    ClaimError
)

from wishwallet.services.payout_service import (
    request_payout,
    update_payout_status,
    process_payout,
    finalize_payout,
    sync_payout,
    PayoutError
)

from wishwallet.services.payment_service import (
    verify_payment,
    confirm_payment,
    process_webhook,
    PaymentError
)

from wishwallet.services.reminder_service import (
    create_automatic_reminder,
    update_reminder_schedule,
    cancel_reminder,
    send_due_reminders,
    ReminderError
)
