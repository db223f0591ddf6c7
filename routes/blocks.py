from flask import Blueprint, request, jsonify, g

from models import db
from models.block import Block
from security.rbac import require_roles
from utils.audit import log_event
from utils.payload import read_interval, read_optional_int, read_flag
from utils.resources import find_resource
from utils.timefmt import isoformat_utc, to_storage, storage_now
from routes.reservations import conflict_resolver, interval_store

blocks_bp = Blueprint("blocks", __name__, url_prefix="/blocks")


def _block_snapshot(block):
    return {
        "resource_id": block.resource_id,
        "reason": block.reason,
        "start_time": isoformat_utc(block.start_time),
        "end_time": isoformat_utc(block.end_time),
        "is_recurring": block.is_recurring,
        "recurrence_rule": block.recurrence_rule,
    }


@blocks_bp.get("")
@require_roles("ADMIN")
def list_blocks():
    resource_id = read_optional_int(request.args.get("resource_id"), "resource_id")
    include_expired = read_flag(request.args.get("include_expired"))

    q = Block.query
    if resource_id is not None:
        q = q.filter_by(resource_id=resource_id)
    if not include_expired:
        q = q.filter(Block.end_time >= storage_now())

    rows = q.order_by(Block.start_time.asc()).all()
    return jsonify(blocks=[b.to_dict() for b in rows]), 200


# ---------- ADMIN: declare the hall unavailable ----------
@blocks_bp.post("")
@require_roles("ADMIN")
def create_block():
    data = request.get_json(silent=True) or {}
    resource_key = data.get("resource_id")
    reason = (data.get("reason") or "").strip()
    if not resource_key or not reason:
        return jsonify(error="resource_id and reason are required"), 400

    interval = read_interval(data.get("start_time"), data.get("end_time"))
    is_recurring = read_flag(data.get("is_recurring"))
    recurrence_rule = (data.get("recurrence_rule") or "").strip() or None
    confirm_conflicts = data.get("confirm_conflicts") is True

    resource = find_resource(resource_key)
    if resource is None:
        return jsonify(error="Resource not found"), 404

    affected = conflict_resolver().reservations_affected_by(resource.id, interval.start, interval.end)
    if affected and not confirm_conflicts:
        return jsonify(
            warning="CONFLICTS_EXIST",
            message="Existing reservations fall inside this block",
            conflicts=[r.to_dict() for r in affected],
            requires_confirmation=True,
        ), 200

    block = Block(
        resource_id=resource.id,
        reason=reason,
        start_time=to_storage(interval.start),
        end_time=to_storage(interval.end),
        is_recurring=is_recurring,
        recurrence_rule=recurrence_rule if is_recurring else None,
        created_by=g.user.id,
    )
    interval_store().save_block(block)

    log_event(
        "CREATE",
        user_id=g.user.id,
        entity_type="Block",
        entity_id=block.id,
        changes={**_block_snapshot(block), "impacted_reservations": len(affected)},
    )
    return jsonify(
        block=block.to_dict(),
        impacted_reservations=[r.to_dict() for r in affected],
    ), 201


@blocks_bp.get("/<int:block_id>")
@require_roles("ADMIN")
def get_block(block_id: int):
    block = db.session.get(Block, block_id)
    if not block:
        return jsonify(error="Block not found"), 404
    return jsonify(block=block.to_dict()), 200


@blocks_bp.patch("/<int:block_id>")
@require_roles("ADMIN")
def update_block(block_id: int):
    data = request.get_json(silent=True) or {}
    block = db.session.get(Block, block_id)
    if not block:
        return jsonify(error="Block not found"), 404

    before = _block_snapshot(block)
    current = block.interval

    resource_id = block.resource_id
    if data.get("resource_id"):
        resource = find_resource(data["resource_id"])
        if resource is None:
            return jsonify(error="Resource not found"), 404
        resource_id = resource.id

    interval = read_interval(
        data.get("start_time") or isoformat_utc(current.start),
        data.get("end_time") or isoformat_utc(current.end),
    )
    reason = (data.get("reason") or "").strip() or block.reason

    block.resource_id = resource_id
    block.reason = reason
    block.start_time = to_storage(interval.start)
    block.end_time = to_storage(interval.end)
    if "is_recurring" in data:
        block.is_recurring = read_flag(data["is_recurring"])
    if "recurrence_rule" in data:
        block.recurrence_rule = (data.get("recurrence_rule") or "").strip() or None
    interval_store().save_block(block)

    log_event(
        "UPDATE",
        user_id=g.user.id,
        entity_type="Block",
        entity_id=block.id,
        changes={"before": before, "after": _block_snapshot(block)},
    )
    return jsonify(block=block.to_dict()), 200


@blocks_bp.delete("/<int:block_id>")
@require_roles("ADMIN")
def delete_block(block_id: int):
    block = db.session.get(Block, block_id)
    if not block:
        return jsonify(error="Block not found"), 404

    snapshot = _block_snapshot(block)
    db.session.delete(block)
    db.session.commit()

    log_event("DELETE", user_id=g.user.id, entity_type="Block", entity_id=block_id, changes=snapshot)
    return jsonify(deleted_id=block_id), 200
