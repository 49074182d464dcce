class ChatMessageMapping:
    """Index settings and field mappings for chat messages.

    The field list mirrors ``MessageDocument``; change both together.
    """

    def __init__(self, number_of_shards: int = 1, number_of_replicas: int = 0):
        """
        Args:
            number_of_shards: primary shards of a newly created index.
            number_of_replicas: replicas of a newly created index.
        """
        self.number_of_shards = number_of_shards
        self.number_of_replicas = number_of_replicas

    def create_configurations(self):
        """Return the OpenSearch index settings and mappings dictionary."""

        configurations = {
            "settings": {
                "number_of_shards": self.number_of_shards,
                "number_of_replicas": self.number_of_replicas,
                "analysis": {
                    "analyzer": {
                        "chat_analyzer": {
                            "type": "standard",
                            "stopwords": "_english_",
                        }
                    }
                },
            },
            "mappings": {
                "properties": {
                    "message_id": {"type": "keyword"},
                    "room_id": {"type": "keyword"},
                    "user_id": {"type": "keyword"},
                    "content": {
                        "type": "text",
                        "analyzer": "chat_analyzer",
                        "fields": {
                            "keyword": {"type": "keyword", "ignore_above": 256},
                        },
                    },
                    "message_type": {"type": "keyword"},
                    "timestamp": {"type": "long"},
                    "created_at": {"type": "date"},
                    "edited_at": {"type": "date"},
                    "reply_to_message_id": {"type": "keyword"},
                    "content_length": {"type": "integer"},
                    "token_count": {"type": "integer"},
                    "has_attachments": {"type": "boolean"},
                    "has_reply": {"type": "boolean"},
                    "attachments": {
                        "type": "nested",
                        "properties": {
                            "name": {"type": "text"},
                            "size": {"type": "long"},
                            "mimeType": {"type": "keyword"},
                            "url": {"type": "keyword"},
                        },
                    },
                    "metadata": {"type": "object", "enabled": False},
                    "source_version": {"type": "long"},
                }
            },
        }

        return configurations
