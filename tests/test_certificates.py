from datetime import timedelta

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from hybrid_nat.activities.lb import generate_certificate


def test_self_signed_certificate() -> None:
    cert_pem, key_pem = generate_certificate("ilb-spoke-1.internal", days_valid=30)

    cert = x509.load_pem_x509_certificate(cert_pem)
    key = serialization.load_pem_private_key(key_pem, password=None)

    cn = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value
    assert cn == "ilb-spoke-1.internal"
    assert cert.issuer == cert.subject
    assert key.key_size == 2048
    assert cert.public_key().public_numbers() == key.public_key().public_numbers()
    assert cert.not_valid_after_utc - cert.not_valid_before_utc == timedelta(days=30)


def test_certificates_are_unique() -> None:
    first, _ = generate_certificate("ilb-spoke-1.internal")
    second, _ = generate_certificate("ilb-spoke-1.internal")
    assert first != second
