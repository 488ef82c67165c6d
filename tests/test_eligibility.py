from conftest import InMemoryInvoiceRepository, make_participant, stored_invoice
from group_billing.domain.models.billing import BillingProfile, Participant, ParticipantStatus
from group_billing.domain.services.eligibility import EligibilityFilter, validate_billing_profile


def test_complete_profile_is_valid():
    validation = validate_billing_profile(BillingProfile(
        name="Ana", tax_id="1X", address="C/ Sol 2", postal_code="41001", city="Sevilla",
    ))
    assert validation.is_valid
    assert validation.missing_fields == []


def test_blank_fields_count_as_missing():
    validation = validate_billing_profile(BillingProfile(name="Ana", tax_id=" ", address="", city="Sevilla"))

    assert not validation.is_valid
    assert validation.missing_fields == ["tax_id", "address", "postal_code"]
    assert validation.missing_labels == ["CIF/NIF", "Dirección", "Código Postal"]


def test_missing_profile_lacks_every_field():
    assert validate_billing_profile(None).missing_labels == [
        "Nombre", "CIF/NIF", "Dirección", "Código Postal", "Ciudad",
    ]


def test_only_attended_or_registered_are_billable(activity):
    activity.participants = [
        make_participant("a", 1, "Uno", status=ParticipantStatus.ATTENDED),
        make_participant("b", 2, "Dos", status=ParticipantStatus.REGISTERED),
        make_participant("c", 3, "Tres", status=ParticipantStatus.CANCELLED),
        make_participant("d", 4, "Cuatro", status=ParticipantStatus.NO_SHOW),
    ]
    report = EligibilityFilter(InMemoryInvoiceRepository()).evaluate(1, activity)

    assert report.default_selection == ["a", "b"]
    assert not report.find("c").status_billable
    assert report.find("c").validation.is_valid


def test_participant_without_client_is_not_billable(activity):
    activity.participants.append(Participant(id="x", client_id=None, status=ParticipantStatus.ATTENDED,
                                             billing_profile=BillingProfile(name="Invitado")))
    report = EligibilityFilter(InMemoryInvoiceRepository()).evaluate(1, activity)

    assert "x" not in report.default_selection
    assert report.find("x").participant.display_name == "Invitado"


def test_already_invoiced_clients_are_excluded(activity):
    repo = InMemoryInvoiceRepository()
    first = stored_invoice("F0009", client_id=102).model_copy(update={"id": 1, "group_activity_id": 30})
    second = stored_invoice("F0010", client_id=102).model_copy(update={"id": 2, "group_activity_id": 30})
    other_activity = stored_invoice("F0011", client_id=103).model_copy(update={"id": 3, "group_activity_id": 99})
    repo.invoices.extend([first, second, other_activity])

    report = EligibilityFilter(repo).evaluate(1, activity)

    assert report.default_selection == ["p-1", "p-3"]
    assert report.find("p-2").already_billed.invoice_number == "F0009"
    assert list(report.already_billed) == [102]


def test_find_already_billed_with_no_clients_skips_the_query():
    repo = InMemoryInvoiceRepository()
    repo.fail_lookups = True

    assert EligibilityFilter(repo).find_already_billed(1, 30, []) == {}
