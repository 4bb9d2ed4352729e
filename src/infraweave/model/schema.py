"""Declarative input/output schema per resource type."""

from typing import Dict, List
from .models import ResourceType

# required: input attributes a declaration must set
# outputs: attributes the provider must report once the resource is applied
RESOURCE_SCHEMAS: Dict[ResourceType, Dict[str, List[str]]] = {
    ResourceType.NETWORK: {
        "required": ["cidr_block"],
        "outputs": ["id", "arn", "cidr_block"],
    },
    ResourceType.SUBNET: {
        "required": ["network_id", "cidr_block"],
        "outputs": ["id", "arn", "cidr_block", "availability_zone"],
    },
    ResourceType.SECURITY_RULE: {
        "required": ["network_id", "protocol", "port"],
        "outputs": ["id"],
    },
    ResourceType.MANAGED_DATABASE: {
        "required": ["engine", "instance_class"],
        "outputs": ["id", "arn", "endpoint", "address", "port"],
    },
    ResourceType.COMPUTE_SERVICE: {
        "required": ["image", "cpu", "memory"],
        "outputs": ["id", "arn", "name"],
    },
    ResourceType.LOAD_BALANCER: {
        "required": ["subnets"],
        "outputs": ["id", "arn", "dns_name", "zone_id"],
    },
    ResourceType.LISTENER: {
        "required": ["load_balancer_arn", "port", "protocol"],
        "outputs": ["id", "arn"],
    },
    ResourceType.DNS_RECORD: {
        "required": ["name", "record_type"],
        "outputs": ["id", "fqdn"],
    },
    ResourceType.CERTIFICATE: {
        "required": ["domain_name"],
        "outputs": ["id", "arn", "status"],
    },
    ResourceType.ALARM: {
        "required": ["metric_name", "threshold"],
        "outputs": ["id", "arn"],
    },
    ResourceType.AUTOSCALING_POLICY: {
        "required": ["target_id", "min_capacity", "max_capacity"],
        "outputs": ["id", "arn"],
    },
    ResourceType.LOG_GROUP: {
        "required": ["name"],
        "outputs": ["id", "arn", "name"],
    },
    ResourceType.STORAGE_BUCKET: {
        "required": ["name"],
        "outputs": ["id", "arn", "bucket_domain_name"],
    },
    ResourceType.BUCKET_POLICY: {
        "required": ["bucket", "policy"],
        "outputs": ["id"],
    },
}


def required_inputs(resource_type) -> List[str]:
    """Input attributes a declaration of this type must set."""
    return list(RESOURCE_SCHEMAS[ResourceType(resource_type)]["required"])


def output_attributes(resource_type) -> List[str]:
    """Attributes a provider must report for an applied resource of this type."""
    return list(RESOURCE_SCHEMAS[ResourceType(resource_type)]["outputs"])


def is_known_type(resource_type: str) -> bool:
    return getattr(resource_type, "value", resource_type) in {t.value for t in ResourceType}
