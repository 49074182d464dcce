import logging

from chat_search_sync.errors import IndexInitializationError
from chat_search_sync.opensearch.mapping import ChatMessageMapping
from chat_search_sync.opensearch.open_search_client import OpenSearchClient
from chat_search_sync.opensearch.open_search_index_client import OpenSearchIndexClient
from chat_search_sync.services.batch_processor import BatchProcessor
from chat_search_sync.services.document_shaper import DocumentShaper
from chat_search_sync.services.schema_manager import IndexSchemaManager
from global_config import configure_logging, global_config

configure_logging(global_config.log_level, global_config.log_format)
logger = logging.getLogger("chat_search_sync.handler")

index_client: OpenSearchIndexClient | None = None
if global_config.opensearch_endpoint:
    client = OpenSearchClient(
        host=global_config.opensearch_endpoint,
        port=global_config.opensearch_port,
        aws_region=global_config.aws_region,
        use_aws_auth=global_config.use_aws_auth,
        use_ssl=global_config.use_ssl,
        verify_certs=global_config.verify_certs,
        timeout=global_config.request_timeout,
    )
    index_client = OpenSearchIndexClient(
        index=global_config.index_name,
        client=client,
        refresh=global_config.refresh_on_write,
        retry_on_conflict=global_config.retry_on_conflict,
    )

mapping = ChatMessageMapping(
    number_of_shards=global_config.number_of_shards,
    number_of_replicas=global_config.number_of_replicas,
)

_index_ready = False


def initialize_index() -> bool:
    """Create the chat message index if needed; called at deployment and cold start.

    Raises:
        IndexInitializationError: OpenSearch is not configured or the index
            cannot be ensured.
    """
    if index_client is None:
        raise IndexInitializationError("OpenSearch client not configured")

    return IndexSchemaManager(index_client, global_config.index_name, mapping).ensure_index()


def handler(event, context=None):
    """Entry point for DynamoDB stream batches."""
    global _index_ready

    records = event.get("Records") or []
    logger.debug("Message processor received DynamoDB stream event: recordCount=%d", len(records))

    if index_client is None:
        logger.error("OpenSearch client not configured")
        return {"statusCode": 500, "body": "OpenSearch not configured"}

    if not _index_ready:
        initialize_index()
        _index_ready = True

    processor = BatchProcessor(index_client, DocumentShaper())
    result = processor.process_stream_records(records)

    logger.info(
        "DynamoDB stream processing completed: processedCount=%d failedCount=%d",
        len(result.succeeded),
        len(result.failed),
    )

    return {
        "statusCode": 200,
        "body": result.to_report(),
        "batchItemFailures": result.batch_item_failures(),
    }


if __name__ == "__main__":
    created = initialize_index()
    print(f"Index {global_config.index_name}: {'created' if created else 'already present'}")
