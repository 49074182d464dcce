import logging

import boto3
from opensearchpy import OpenSearch, RequestsHttpConnection
from requests_aws4auth import AWS4Auth

from .abstract_classes import ABCClient

logger = logging.getLogger(__name__)


class OpenSearchClient(ABCClient):
    """Factory for the OpenSearch connection shared by every batch in a process.

    Build one at process start and pass it to the components that need it;
    the underlying ``OpenSearch`` client is created lazily and then reused.
    """

    def __init__(
        self,
        host: str,
        port: int = 443,
        aws_region: str | None = None,
        use_aws_auth: bool = True,
        use_ssl: bool = True,
        verify_certs: bool = True,
        timeout: float = 10.0,
    ):
        """Initialize the OpenSearchClient.

        Args:
            host (str): endpoint of the domain, without scheme.
            port (int, optional): Defaults to 443.
            aws_region (str, optional): region used to sign requests.
            use_aws_auth (bool, optional): sign requests with SigV4. Defaults to True.
            use_ssl (bool, optional): Whether to use SSL. Defaults to True.
            verify_certs (bool, optional): Whether to verify SSL certificates. Defaults to True.
            timeout (float, optional): per-request timeout in seconds. Defaults to 10.
        """
        self.host = host.removeprefix("https://").removeprefix("http://").rstrip("/")
        self.port = port
        self.aws_region = aws_region
        self.use_aws_auth = use_aws_auth
        # Note: AWS IAM usually requires SSL to be True
        self.use_ssl = use_ssl
        self.verify_certs = verify_certs
        self.timeout = timeout
        self._client: OpenSearch | None = None

    def get_client(self) -> OpenSearch:
        """Get the OpenSearch client instance.

        Returns:
            OpenSearch: The OpenSearch client instance.
        """
        if self._client is None:
            http_auth = self._aws_auth() if self.use_aws_auth else None

            self._client = OpenSearch(
                hosts=[{"host": self.host, "port": self.port}],
                http_auth=http_auth,
                use_ssl=self.use_ssl,
                verify_certs=self.verify_certs,
                connection_class=RequestsHttpConnection,
                timeout=self.timeout,
            )
            logger.info(
                "OpenSearch client created for %s:%s (signed=%s)",
                self.host,
                self.port,
                http_auth is not None,
            )

        return self._client

    def _aws_auth(self) -> AWS4Auth:
        session = boto3.Session()
        credentials = session.get_credentials()
        region = self.aws_region or session.region_name
        service = "es"

        return AWS4Auth(
            credentials.access_key,
            credentials.secret_key,
            region,
            service,
            session_token=credentials.token,
        )
