"""
Read-only certificate queries against a workload domain.
"""

from typing import List, Optional

from .logger import get_logger
from .models import Certificate


class CertificateQueryEngine:
    """
    Lists and looks up certificates known to SDDC Manager.

    Each call is a single round trip with no polling. "Nothing found" is an
    empty list or None; transport failures are raised.
    """

    def __init__(self, client, call_timeout: Optional[float] = None):
        self.client = client
        self.call_timeout = call_timeout
        self.logger = get_logger()

    def list_by_domain(self, domain_id: str) -> List[Certificate]:
        """
        Fetch every certificate of a domain.

        Args:
            domain_id: Workload domain id

        Returns:
            Certificates in the order the server lists them (possibly empty)
        """
        certificates = self.client.list_certificates(domain_id, timeout=self.call_timeout)
        if certificates:
            self.logger.debug(f"Domain {domain_id}: {len(certificates)} certificate(s)")
            for i, cert in enumerate(certificates, start=1):
                self.logger.debug(
                    f"  Certificate {i}: issued_to={cert.issued_to} "
                    f"expires={cert.not_after} status={cert.expiration_status}"
                )
        else:
            self.logger.debug(f"No certificates found for domain {domain_id}")
        return certificates

    def find_by_resource(self, domain_id: str, resource_fqdn: str) -> Optional[Certificate]:
        """
        Find the certificate issued to a resource.

        Args:
            domain_id: Workload domain id
            resource_fqdn: FQDN the certificate was issued to

        Returns:
            The first certificate whose issued_to equals resource_fqdn, or None
        """
        for cert in self.list_by_domain(domain_id):
            if cert.issued_to is not None and cert.issued_to == resource_fqdn:
                return cert
        self.logger.debug(f"No certificate issued to {resource_fqdn} in domain {domain_id}")
        return None
