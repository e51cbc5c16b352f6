"""Declarative models for the delta telemetry log tables.

Table and column names are stable identifiers shared with the view-refresh
scripts under sql/views; renaming one needs a migration.
"""

from sqlalchemy import BigInteger, Column, DateTime, Integer, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# INT8 primary keys; SQLite only autoincrements a plain INTEGER PRIMARY KEY.
PrimaryKey = BigInteger().with_variant(Integer, "sqlite")
Timestamp = DateTime(timezone=True)


class ContentDealLogs(Base):
    __tablename__ = "content_deal_logs"
    __json_casing__ = "camel"

    id = Column(PrimaryKey, primary_key=True)
    content = Column(BigInteger, nullable=True)
    user_id = Column(BigInteger, nullable=True)
    prop_cid = Column(Text, nullable=True)
    deal_uuid = Column(Text, nullable=True)
    miner = Column(Text, nullable=True)
    deal_id = Column(BigInteger, nullable=True)
    failed_at = Column(Timestamp, nullable=True)
    dt_chan = Column(Text, nullable=True)
    transfer_started = Column(Timestamp, nullable=True)
    transfer_finished = Column(Timestamp, nullable=True)
    on_chain_at = Column(Timestamp, nullable=True)
    sealed_at = Column(Timestamp, nullable=True)
    deal_protocol_version = Column(Text, nullable=True)
    miner_version = Column(Text, nullable=True)
    system_content_deal_id = Column(BigInteger, nullable=True)
    created_at = Column(Timestamp, nullable=True)
    updated_at = Column(Timestamp, nullable=True)
    delta_node_uuid = Column(Text, nullable=True)


class ContentDealProposalLogs(Base):
    __tablename__ = "content_deal_proposal_logs"
    __json_casing__ = "snake"

    id = Column(PrimaryKey, primary_key=True)
    content = Column(BigInteger, nullable=True)
    unsigned = Column(Text, nullable=True)
    signed = Column(Text, nullable=True)
    meta = Column(Text, nullable=True)
    system_content_deal_proposal_id = Column(BigInteger, nullable=True)
    created_at = Column(Timestamp, nullable=True)
    updated_at = Column(Timestamp, nullable=True)
    delta_node_uuid = Column(Text, nullable=True)


class ContentDealProposalParametersLogs(Base):
    __tablename__ = "content_deal_proposal_parameters_logs"
    __json_casing__ = "snake"

    id = Column(PrimaryKey, primary_key=True)
    content = Column(BigInteger, nullable=True)
    label = Column(Text, nullable=True)
    duration = Column(BigInteger, nullable=True)
    start_epoch = Column(BigInteger, nullable=True)
    end_epoch = Column(BigInteger, nullable=True)
    transfer_params = Column(Text, nullable=True)
    system_content_deal_proposal_parameters_id = Column(BigInteger, nullable=True)
    created_at = Column(Timestamp, nullable=True)
    updated_at = Column(Timestamp, nullable=True)
    delta_node_uuid = Column(Text, nullable=True)


class ContentLogs(Base):
    __tablename__ = "content_logs"
    __json_casing__ = "snake"

    id = Column(PrimaryKey, primary_key=True)
    name = Column(Text, nullable=True)
    size = Column(BigInteger, nullable=True)
    cid = Column(Text, nullable=True)
    request_type = Column(Text, nullable=True)
    piece_commitment_id = Column(BigInteger, nullable=True)
    status = Column(Text, nullable=True)
    connection_mode = Column(Text, nullable=True)
    last_message = Column(Text, nullable=True)
    system_content_id = Column(BigInteger, nullable=True)
    created_at = Column(Timestamp, nullable=True)
    updated_at = Column(Timestamp, nullable=True)
    delta_node_uuid = Column(Text, nullable=True)


class ContentMinerLogs(Base):
    __tablename__ = "content_miner_logs"
    __json_casing__ = "snake"

    id = Column(PrimaryKey, primary_key=True)
    content = Column(BigInteger, nullable=True)
    miner = Column(Text, nullable=True)
    node_info = Column(Text, nullable=True)
    requester_info = Column(Text, nullable=True)
    requesting_api_key = Column(Text, nullable=True)
    system_content_miner_id = Column(BigInteger, nullable=True)
    created_at = Column(Timestamp, nullable=True)
    updated_at = Column(Timestamp, nullable=True)
    delta_node_uuid = Column(Text, nullable=True)


class ContentWalletLogs(Base):
    __tablename__ = "content_wallet_logs"
    __json_casing__ = "camel"

    id = Column(PrimaryKey, primary_key=True)
    content = Column(BigInteger, nullable=True)
    wallet = Column(Text, nullable=True)
    node_info = Column(Text, nullable=True)
    requester_info = Column(Text, nullable=True)
    requesting_api_key = Column(Text, nullable=True)
    system_content_wallet_id = Column(BigInteger, nullable=True)
    created_at = Column(Timestamp, nullable=True)
    updated_at = Column(Timestamp, nullable=True)
    delta_node_uuid = Column(Text, nullable=True)
    wallet_id = Column(BigInteger, nullable=True)


class DeltaNodeGeoLocations(Base):
    __tablename__ = "delta_node_geo_locations"
    __json_casing__ = "snake"

    id = Column(PrimaryKey, primary_key=True)
    ip = Column(Text, nullable=True)
    country = Column(Text, nullable=True)
    region = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    latitude = Column(Text, nullable=True)
    longitude = Column(Text, nullable=True)
    isp = Column(Text, nullable=True)
    created_at = Column(Timestamp, nullable=True)
    updated_at = Column(Timestamp, nullable=True)
    delta_node_uuid = Column(Text, nullable=True)


class DeltaStartupLogs(Base):
    __tablename__ = "delta_startup_logs"
    __json_casing__ = "camel"

    id = Column(PrimaryKey, primary_key=True)
    node_info = Column(Text, nullable=True)
    os_details = Column(Text, nullable=True)
    ip_address = Column(Text, nullable=True)
    created_at = Column(Timestamp, nullable=True)
    updated_at = Column(Timestamp, nullable=True)
    delta_node_uuid = Column(Text, nullable=True)


class InstanceMetaLogs(Base):
    __tablename__ = "instance_meta_logs"
    __json_casing__ = "snake"

    id = Column(PrimaryKey, primary_key=True)
    instance_id = Column(Text, nullable=True)
    instance_host_name = Column(Text, nullable=True)
    instance_node_name = Column(Text, nullable=True)
    os_details = Column(Text, nullable=True)
    public_ip = Column(Text, nullable=True)
    memory_limit = Column(BigInteger, nullable=True)
    cpu_limit = Column(BigInteger, nullable=True)
    storage_limit = Column(BigInteger, nullable=True)
    number_of_cpus = Column(BigInteger, nullable=True)
    storage_in_bytes = Column(BigInteger, nullable=True)
    system_memory = Column(BigInteger, nullable=True)
    heap_memory = Column(BigInteger, nullable=True)
    heap_in_use = Column(BigInteger, nullable=True)
    stack_in_use = Column(BigInteger, nullable=True)
    instance_start = Column(Timestamp, nullable=True)
    bytes_per_cpu = Column(BigInteger, nullable=True)
    system_instance_meta_id = Column(BigInteger, nullable=True)
    created_at = Column(Timestamp, nullable=True)
    updated_at = Column(Timestamp, nullable=True)
    delta_node_uuid = Column(Text, nullable=True)


class LogEvents(Base):
    __tablename__ = "log_events"
    __json_casing__ = "snake"

    id = Column(PrimaryKey, primary_key=True)
    log_event_type = Column(Text, nullable=True)
    log_event_object = Column(Text, nullable=True)
    log_event_id = Column(BigInteger, nullable=True)
    log_event = Column(Text, nullable=True)
    collect_name = Column(Text, nullable=True)
    source_host = Column(Text, nullable=True)
    source_ip = Column(Text, nullable=True)
    created_at = Column(Timestamp, nullable=True)
    updated_at = Column(Timestamp, nullable=True)
    delta_node_uuid = Column(Text, nullable=True)


class PieceCommitmentLogs(Base):
    __tablename__ = "piece_commitment_logs"
    __json_casing__ = "camel"

    id = Column(PrimaryKey, primary_key=True)
    cid = Column(Text, nullable=True)
    piece = Column(Text, nullable=True)
    size = Column(BigInteger, nullable=True)
    padded_piece_size = Column(BigInteger, nullable=True)
    unnpadded_piece_size = Column(BigInteger, nullable=True)
    status = Column(Text, nullable=True)
    last_message = Column(Text, nullable=True)
    node_info = Column(Text, nullable=True)
    requester_info = Column(Text, nullable=True)
    requesting_api_key = Column(Text, nullable=True)
    system_content_piece_commitment_id = Column(BigInteger, nullable=True)
    created_at = Column(Timestamp, nullable=True)
    updated_at = Column(Timestamp, nullable=True)
    delta_node_uuid = Column(Text, nullable=True)


class WalletLogs(Base):
    __tablename__ = "wallet_logs"
    __json_casing__ = "camel"

    id = Column(PrimaryKey, primary_key=True)
    uuid = Column(Text, nullable=True)
    addr = Column(Text, nullable=True)
    owner = Column(Text, nullable=True)
    key_type = Column(Text, nullable=True)
    node_info = Column(Text, nullable=True)
    requester_info = Column(Text, nullable=True)
    requesting_api_key = Column(Text, nullable=True)
    system_wallet_id = Column(BigInteger, nullable=True)
    created_at = Column(Timestamp, nullable=True)
    updated_at = Column(Timestamp, nullable=True)
    delta_node_uuid = Column(Text, nullable=True)


ALL_MODELS = (
    ContentDealLogs,
    ContentDealProposalLogs,
    ContentDealProposalParametersLogs,
    ContentLogs,
    ContentMinerLogs,
    ContentWalletLogs,
    DeltaNodeGeoLocations,
    DeltaStartupLogs,
    InstanceMetaLogs,
    LogEvents,
    PieceCommitmentLogs,
    WalletLogs,
)
