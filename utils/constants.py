"""
utils/constants.py

Purpose: Centralized static content

- All user-facing messages
- Button labels
- Reusable option lists

(Prevents hardcoding across the codebase)
"""

# ============================================================
# WELCOME & ONBOARDING
# ============================================================

WELCOME_NEW_USER = """👋 *Welcome to ZimQuote!*

Create invoices, quotations and receipts, record payments and expenses, and see your sales, all from WhatsApp.

Tap *Create business* to start your free trial.
Invited by a business? Reply *JOIN*."""

BUTTON_CREATE_BUSINESS = "Create business"

ASK_BUSINESS_NAME = "🏢 What is the name of your business?"

ASK_BUSINESS_CURRENCY = "💱 Which currency do you invoice in?"

ASK_BUSINESS_LOGO = "🖼️ Would you like to add your logo to documents?"
BUTTON_UPLOAD_LOGO = "Upload logo"
BUTTON_SKIP = "Skip"

ASK_LOGO_IMAGE = "📷 Send your logo as an image now, or reply *skip*."

LOGO_RECEIVED = "✅ Logo received. It will appear on your next documents."

LOGO_FAILED = "⚠️ We could not save that logo. Please try again from Settings."

ONBOARDING_DONE = """🎉 *{name}* is ready!

You are on the *Free Trial*. Here is your menu."""

# ============================================================
# INVITES
# ============================================================

JOIN_SUCCESS = """✅ *Invitation accepted!*

You now work with *{business}* as *{role}*."""

JOIN_NO_INVITE = "❌ No pending invitation was found for this number. Ask the business owner to invite you."

JOIN_NOTIFY_OWNER = "👤 {phone} accepted your invitation and joined as *{role}*."

ASK_INVITE_PHONE = "📱 Enter the WhatsApp number of the person to invite (e.g. 0772123456)."

INVITE_INVALID_PHONE = "❌ That number is not valid. Please send a number like 0772123456 or +263772123456."

INVITE_ALREADY_ACTIVE = "ℹ️ That number is already a member of this business."

INVITE_CHOOSE_BRANCH = "🏬 Which branch will they work at?"

INVITE_CHOOSE_ROLE = "🔑 Which role should they have?"

INVITE_CREATED = """✅ *Invitation created* for {phone} ({role}, {branch}).

Share this link with them. They tap it and send *JOIN*:
{link}"""

USER_LIMIT_REACHED = "🚫 Your *{package}* package allows {limit} user(s). Upgrade to add more."

MEMBERS_HEADER = "👥 *Team members*"

# ============================================================
# MENUS & NAVIGATION
# ============================================================

CANCELLED = "❎ Cancelled."

NOT_UNDERSTOOD = "🤔 Please choose one of the options below."

ACCESS_DENIED = "🚫 You do not have access to this section. Ask the business owner if you need it."

NO_ACCESS_TO_BUSINESS = """🚫 Your number is not an active member of this business.

Ask the owner to invite you, then reply *JOIN*."""

GENERIC_FAILURE = "❌ Something went wrong. Please try again or reply *menu*."

CLIENTS_MENU_TEXT = "👥 *Clients*"
SALES_MENU_TEXT = "📂 *Sales documents*"
BUSINESS_MENU_TEXT = "🏢 *Business & team*"
USERS_MENU_TEXT = "👤 *Users*"
BRANCHES_MENU_TEXT = "🏬 *Branches*"
REPORTS_MENU_TEXT = "📊 *Reports*\nWhich report would you like?"
SETTINGS_MENU_TEXT = """⚙️ *Settings*

Currency: {currency}
Payment terms: {terms} days
Prefixes: {invoice_prefix} / {quote_prefix} / {receipt_prefix}
VAT rate: {vat}
Address: {address}
Logo: {logo}"""

# ============================================================
# PACKAGES & UPGRADES
# ============================================================

FEATURE_NOT_IN_PACKAGE = "🔒 *{feature}* is not included in your *{package}* package."

FEATURE_ASK_OWNER = "🔒 *{feature}* is not included in this business's package. Ask the owner to upgrade."

TRIAL_EXPIRED = "⏰ Your free trial has ended. Choose a package to keep using ZimQuote."

MONTHLY_LIMIT_REACHED = "🚫 You have used all {limit} documents included in your package this month. Upgrade to continue."

UPGRADE_CHOOSE = "⭐ *Upgrade your package*\nCurrent: *{package}*"

UPGRADE_NONE = "✅ You are already on the highest package."

UPGRADE_LINK = """💳 *{package}* ({price} USD / 30 days)

Complete your payment here:
{link}

Your package is upgraded as soon as payment is confirmed."""

# ============================================================
# CLIENTS
# ============================================================

DOC_START = "🧾 *New {label}*\nWho is it for?"
BUTTON_SAVED_CLIENT = "Saved client"
BUTTON_NEW_CLIENT = "New client"
BUTTON_CANCEL = "Cancel"

CHOOSE_SAVED_CLIENT = "👥 Choose a client:"

NO_SAVED_CLIENTS = "ℹ️ No saved clients yet."

ASK_CLIENT_NAME = "👤 Enter the client's name:"

ASK_CLIENT_PHONE = "📱 Enter the client's phone number, reply *same* to use yours, or *skip*."

CLIENT_SAVED = "✅ Client *{name}* saved."

CLIENT_NOT_FOUND = "❌ That client could not be found. Please choose again."

STATEMENT_CHOOSE = "📄 Which client's statement?"

STATEMENT_TEXT = """📄 *Statement: {name}*

Invoices: {invoices}
Billed: {billed}
Paid: {paid}
*Balance: {balance}*"""

# ============================================================
# ITEMS & DOCUMENT CONFIRMATION
# ============================================================

ASK_ITEM = "➕ *Add an item*\nType the item description, or choose from your catalogue."
BUTTON_CATALOGUE = "Catalogue"
BUTTON_CUSTOM_ITEM = "Custom item"

ASK_ITEM_DESCRIPTION = "✏️ Type the item description:"

CHOOSE_PRODUCT = "📦 Choose a product:"

NO_PRODUCTS = "ℹ️ Your catalogue is empty. Type the item description instead."

ASK_QUANTITY = "🔢 Quantity for *{description}*?"

ASK_UNIT_PRICE = "💲 Unit price for *{description}* ({currency})?\nReply *skip* for 0."

ITEM_ADDED = "✅ Added: {description} x{quantity} @ {price}"

ASK_MORE_ITEMS = "Add another item or review the {label}?"
BUTTON_ADD_ITEM = "Add item"
BUTTON_REVIEW = "Review"

CONFIRM_OPTIONS = "What would you like to do?"
BUTTON_GENERATE = "Generate"
BUTTON_DISCOUNT = "Set discount"
BUTTON_VAT = "Set VAT"

ASK_DISCOUNT = "🏷️ Enter the discount percentage (e.g. 10 or 10%). Send 0 to remove."

ASK_VAT = "🧮 Enter the VAT percentage (e.g. 15). Send 0 for no VAT."

DOCUMENT_CREATED = "✅ *{label} {number}* created.\nTotal: {total}"

DOCUMENT_ALREADY_CREATED = "ℹ️ *{label} {number}* was already created."

DOCUMENT_PDF_CAPTION = "📄 {label} {number}"

DOCUMENT_PDF_UNAVAILABLE = "⏳ The PDF for *{number}* is not available yet. Open it later from *Sales documents*."

COMMIT_FAILED = "❌ We could not save this {label}. Nothing was lost. Tap *Generate* to try again."

# ============================================================
# SAVED DOCUMENTS
# ============================================================

DOCVIEW_CHOOSE = "📂 Recent {label}s:"

DOCVIEW_EMPTY = "ℹ️ No {label}s yet."

DOCVIEW_DETAIL = """📄 *{number}* ({status})
Client: {client}
Total: {total}
Balance: {balance}
Date: {date}"""
BUTTON_VIEW_PDF = "View PDF"
BUTTON_DELETE = "Delete"

DOCUMENT_DELETED = "🗑️ {number} deleted."

# ============================================================
# PAYMENTS & EXPENSES
# ============================================================

PAYMENT_CHOOSE_INVOICE = "💰 Which invoice is being paid?"

PAYMENT_NO_INVOICES = "✅ There are no unpaid invoices."

ASK_PAYMENT_AMOUNT = "💵 Amount received for *{number}*?\nBalance: {balance}"

PAYMENT_EXCEEDS_BALANCE = "❌ Payment exceeds invoice balance.\nBalance: {balance}"

ASK_PAYMENT_METHOD = "💳 How was it paid?"

PAYMENT_RECORDED = """✅ *Payment recorded*

{amount} on {invoice}
Receipt: *{receipt}*"""

PAYMENT_METHOD_LABELS = {
    "cash": "Cash",
    "bank": "Bank transfer",
    "ecocash": "EcoCash",
    "other": "Other",
}

ASK_EXPENSE_CATEGORY = "🧾 *Record expense*\nChoose a category:"

EXPENSE_CATEGORY_LABELS = {
    "rent": "Rent",
    "utilities": "Utilities",
    "transport": "Transport",
    "supplies": "Supplies",
    "salaries": "Salaries",
    "other": "Other",
}

ASK_EXPENSE_DESCRIPTION = "✏️ Describe the expense:"

ASK_EXPENSE_AMOUNT = "💵 Amount ({currency})?"

ASK_EXPENSE_METHOD = "💳 How was it paid?"

EXPENSE_RECORDED = "✅ Expense recorded: {category}, {amount} ({method})."

# ============================================================
# REPORTS
# ============================================================

REPORT_TITLES = {"daily": "Today", "weekly": "Last 7 days", "monthly": "This month"}

REPORT_TEXT = """📊 *{title}*{scope}

Invoices: {invoices}
Sales: {sales}
Cash received: {cash}
Expenses: {expenses}
Net cash: {net_cash}
Outstanding: {outstanding}"""

REPORT_CHOOSE_BRANCH = "🏬 Which branch?"

# ============================================================
# SETTINGS
# ============================================================

ASK_SETTING_CURRENCY = "💱 Choose the business currency:"
ASK_SETTING_TERMS = "📅 Payment terms in days (e.g. 30):"
ASK_SETTING_PREFIX = "🔤 New {label} prefix (1-10 letters/digits, e.g. {example}):"
ASK_SETTING_VAT = "🧮 Default VAT rate in % (0 for none):"
ASK_SETTING_ADDRESS = "📍 Business address:"
SETTING_UPDATED = "✅ {field} updated."

# ============================================================
# BRANCHES & CATALOGUE
# ============================================================

ASK_BRANCH_NAME = "🏬 Name of the new branch:"
BRANCH_CREATED = "✅ Branch *{name}* created."
BRANCH_LIMIT_REACHED = "🚫 Your *{package}* package allows {limit} branch(es). Upgrade to add more."
BRANCHES_HEADER = "🏬 *Branches*"

ASK_PRODUCT_NAME = "📦 Product or service name:"
ASK_PRODUCT_PRICE = "💲 Unit price for *{name}* ({currency}):"
PRODUCT_SAVED = "✅ *{name}* added to your catalogue at {price}."
