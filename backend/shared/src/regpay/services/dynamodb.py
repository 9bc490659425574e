"""Thin boto3 wrapper for the payment gate's DynamoDB tables.

Only the webhook event log lives in DynamoDB. Table names are
``<prefix>-<table>`` so each environment gets its own tables.
"""

from typing import Any

import boto3
from botocore.exceptions import ClientError

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"

_instance: "DynamoDBService | None" = None


def get_dynamodb_service(table_prefix: str | None = None) -> "DynamoDBService":
    """Process-wide DynamoDBService; ``table_prefix`` applies on first use only."""
    global _instance
    if _instance is None:
        _instance = DynamoDBService(table_prefix or "regpay-development")
    return _instance


def reset_dynamodb_service() -> None:
    """Drop the shared instance so the next call builds a fresh boto3 resource."""
    global _instance
    _instance = None


def _is_condition_failure(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == CONDITIONAL_CHECK_FAILED


def _expression_args(
    condition: str | None,
    values: dict[str, Any] | None,
    names: dict[str, str] | None,
) -> dict[str, Any]:
    args: dict[str, Any] = {}
    if condition:
        args["ConditionExpression"] = condition
    if values:
        args["ExpressionAttributeValues"] = values
    if names:
        args["ExpressionAttributeNames"] = names
    return args


class DynamoDBService:
    """Prefixed table access with conditional writes reported as booleans."""

    def __init__(self, table_prefix: str) -> None:
        self.name_prefix = table_prefix
        self._resource = boto3.resource("dynamodb")

    def table(self, name: str) -> Any:
        return self._resource.Table(f"{self.name_prefix}-{name}")

    def get_item(self, table: str, key: dict[str, Any]) -> dict[str, Any] | None:
        """Strongly consistent read; None when the key does not exist."""
        item: dict[str, Any] | None = (
            self.table(table).get_item(Key=key, ConsistentRead=True).get("Item")
        )
        return item

    def put_item(
        self,
        table: str,
        item: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
        expression_attribute_names: dict[str, str] | None = None,
    ) -> bool:
        """Write ``item``. Returns False if ``condition_expression`` did not hold."""
        args = _expression_args(
            condition_expression, expression_attribute_values, expression_attribute_names
        )
        try:
            self.table(table).put_item(Item=item, **args)
        except ClientError as e:
            if _is_condition_failure(e):
                return False
            raise
        return True

    def update_item(
        self,
        table: str,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_values: dict[str, Any],
        expression_attribute_names: dict[str, str] | None = None,
        condition_expression: str | None = None,
    ) -> dict[str, Any] | None:
        """Apply ``update_expression`` and return the new item.

        Returns None if ``condition_expression`` did not hold.
        """
        args = _expression_args(
            condition_expression, expression_attribute_values, expression_attribute_names
        )
        try:
            response = self.table(table).update_item(
                Key=key, UpdateExpression=update_expression, ReturnValues="ALL_NEW", **args
            )
        except ClientError as e:
            if _is_condition_failure(e):
                return None
            raise
        attributes: dict[str, Any] | None = response.get("Attributes")
        return attributes

    def scan(self, table: str, filter_expression: Any | None = None) -> list[dict[str, Any]]:
        """Every item matching ``filter_expression`` across all scan pages."""
        args: dict[str, Any] = {}
        if filter_expression is not None:
            args["FilterExpression"] = filter_expression

        items: list[dict[str, Any]] = []
        while True:
            page = self.table(table).scan(**args)
            items.extend(page.get("Items", []))
            if "LastEvaluatedKey" not in page:
                return items
            args["ExclusiveStartKey"] = page["LastEvaluatedKey"]
