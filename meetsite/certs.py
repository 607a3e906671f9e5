"""
TLS certificate handling for the meeting domain.

Certificates live under the Let's Encrypt live directory for the domain,
whether certbot issued them or they were generated here as a temporary
self-signed placeholder. The presence of fullchain.pem is the only signal
that a certificate exists.

acquire_certificate() walks the preference chain: keep an existing
certificate, else ask certbot, else fall back to self-signed.
"""

import logging
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from .config import Config
from .errors import CertificateAcquisitionFailure, ConfigWriteError, MissingDependency
from .models import CertificateInfo, CertificateSource, Outcome, OutcomeStatus
from .nginx import atomic_write
from .tools import Toolbox

logger = logging.getLogger(__name__)

SELF_SIGNED_DAYS = 10
KEY_SIZE = 2048


def certificate_present(config: Config) -> bool:
    return config.fullchain.is_file()


def build_self_signed(domain: str, days: int = SELF_SIGNED_DAYS) -> tuple[bytes, bytes]:
    """Create a (key_pem, cert_pem) pair for a throwaway certificate."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=KEY_SIZE)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domain)])
    now = datetime.now(timezone.utc)

    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=1))
        .not_valid_after(now + timedelta(days=days))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(x509.SubjectAlternativeName([x509.DNSName(domain)]), critical=False)
        .sign(key, hashes.SHA256())
    )

    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return key_pem, cert.public_bytes(serialization.Encoding.PEM)


def generate_self_signed(config: Config) -> Outcome:
    """
    Write a temporary self-signed certificate for the domain.

    An existing private key is never overwritten; in that case nothing is
    written and the Outcome is SKIPPED.

    Raises:
        ConfigWriteError: the certificate directory cannot be written
    """
    outcome = Outcome(name="generate-self-signed", details={"cert_dir": str(config.cert_dir)})

    try:
        config.cert_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigWriteError(f"Cannot create {config.cert_dir}: {e}") from e

    if config.privkey.exists():
        outcome.status = OutcomeStatus.SKIPPED
        outcome.message = "Existing key present; leaving in place (self-signed skipped)."
        logger.info(outcome.message)
        return outcome

    logger.info("Generating temporary self-signed cert (NOT trusted).")
    key_pem, cert_pem = build_self_signed(config.domain)
    try:
        atomic_write(config.privkey, key_pem.decode("ascii"), mode=0o600)
    except OSError as e:
        raise ConfigWriteError(f"Cannot write self-signed key to {config.cert_dir}: {e}") from e

    try:
        atomic_write(config.fullchain, cert_pem.decode("ascii"))
    except OSError as e:
        # A key without a chain would block every later self-signed attempt
        config.privkey.unlink(missing_ok=True)
        raise ConfigWriteError(f"Cannot write self-signed certificate to {config.cert_dir}: {e}") from e

    outcome.message = f"Self-signed certificate generated (valid {SELF_SIGNED_DAYS} days)."
    outcome.details["source"] = CertificateSource.SELF_SIGNED.value
    logger.info(outcome.message)
    return outcome


def obtain_certificate(config: Config, tools: Toolbox) -> Outcome:
    """
    Request a certificate from certbot using webroot validation.

    Raises:
        MissingDependency: certbot or nginx is not installed
        CertificateAcquisitionFailure: certbot exited with an error
        ConfigWriteError: the webroot cannot be created
    """
    if not tools.certbot.available():
        raise MissingDependency("certbot")
    if not tools.nginx.installed():
        raise MissingDependency("nginx")

    try:
        config.certbot_webroot.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigWriteError(f"Cannot create certbot webroot {config.certbot_webroot}: {e}") from e

    tools.certbot.certonly(config.certbot_webroot, config.domain)

    outcome = Outcome(
        name="obtain-certificate",
        message=f"Certificate obtained for {config.domain}",
        details={"source": CertificateSource.ISSUED.value},
    )
    logger.info(outcome.message)
    return outcome


def acquire_certificate(config: Config, tools: Toolbox) -> Outcome:
    """
    Make sure a certificate exists, preferring existing, then issued, then self-signed.

    A certbot failure is recovered locally by falling back to a
    self-signed certificate and is recorded as a warning.

    Raises:
        ConfigWriteError: the self-signed fallback could not be written
    """
    if certificate_present(config):
        outcome = Outcome(
            name="certificate",
            status=OutcomeStatus.SKIPPED,
            message="Certificate already present; skipping issuance.",
            details={"source": CertificateSource.EXISTING.value},
        )
        logger.info(outcome.message)
        return outcome

    warnings = []
    if tools.certbot.available():
        logger.info("Attempting real certificate issuance...")
        try:
            issued = obtain_certificate(config, tools)
        except (CertificateAcquisitionFailure, MissingDependency) as e:
            logger.warning(f"Real cert failed; generating self-signed. ({e})")
            warnings.append(str(e))
        else:
            issued.name = "certificate"
            return issued
    else:
        logger.info("certbot not available; creating self-signed cert.")

    outcome = generate_self_signed(config)
    outcome.name = "certificate"
    for warning in warnings:
        outcome.warn(warning)
    return outcome


def read_certificate(config: Config) -> CertificateInfo | None:
    """Describe the installed certificate chain, or None if there is none."""
    if not certificate_present(config):
        return None

    cert = x509.load_pem_x509_certificate(config.fullchain.read_bytes())
    return CertificateInfo(
        path=str(config.fullchain),
        subject=cert.subject.rfc4514_string(),
        issuer=cert.issuer.rfc4514_string(),
        not_after=cert.not_valid_after_utc,
        self_signed=cert.subject == cert.issuer,
    )
