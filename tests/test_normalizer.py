from app.flow.actions import Action, token_value, CLIENT_PREFIX
from app.flow.normalizer import normalize_input
from app.flow.session import DocumentSession
from app.flow.states import DialogState
from app.schemas.webhook import InboundMessage


def message(text="", interactive_id=None):
    return InboundMessage(phone="+263772000001", text=text, message_id="SM1",
                          transport="twilio", interactive_id=interactive_id)


def test_interactive_id_wins_over_text():
    inp = normalize_input(message("1", interactive_id=" New_Invoice "), DialogState.READY, None, "owner")
    assert inp.action == "new_invoice"


def test_number_in_ready_uses_role_menu():
    assert normalize_input(message("1"), DialogState.READY, None, "owner").action == Action.NEW_INVOICE.value
    assert normalize_input(message("2"), DialogState.READY, None, "clerk").action == Action.RECORD_PAYMENT.value


def test_number_outside_menu_is_free_text():
    inp = normalize_input(message("42"), DialogState.READY, None, "clerk")
    assert inp.action is None
    assert inp.text == "42"


def test_number_in_flow_uses_last_shown_choices():
    session = DocumentSession(doc_type="invoice", choices=["use_saved_client", "new_client", "cancel"])
    inp = normalize_input(message("2"), DialogState.DOC_CHOOSE_CLIENT, session, "owner")
    assert inp.action == Action.NEW_CLIENT.value


def test_number_without_choices_is_free_text():
    session = DocumentSession(doc_type="invoice")
    inp = normalize_input(message("3"), DialogState.DOC_ITEM_QTY, session, "owner")
    assert inp.action is None
    assert inp.text == "3"


def test_keywords():
    assert normalize_input(message("Hi")).action == Action.MENU.value
    assert normalize_input(message(" CANCEL ")).action == Action.CANCEL.value
    assert normalize_input(message("join")).action == Action.JOIN.value


def test_typed_static_token():
    assert normalize_input(message("settings_menu")).action == Action.SETTINGS_MENU.value


def test_free_text_keeps_case():
    inp = normalize_input(message("  Website design "))
    assert inp.action is None
    assert inp.text == "Website design"


def test_token_value():
    assert token_value("client_ab12", CLIENT_PREFIX) == "ab12"
    assert token_value("client_", CLIENT_PREFIX) is None
    assert token_value(None, CLIENT_PREFIX) is None
