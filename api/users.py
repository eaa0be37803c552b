from __future__ import annotations

import logging
from typing import Tuple

from flask import Blueprint, request, jsonify, abort

from models import storage
from models.user import User
from models.schemas.user import AccountOutSchema, RoleUpdateSchema
from utils.decorators import roles_required

logger = logging.getLogger(__name__)

MAX_LIMIT = 100

bp = Blueprint("users", __name__)

account_out_schema = AccountOutSchema()
account_list_out_schema = AccountOutSchema(many=True)
role_update_schema = RoleUpdateSchema()


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", "20"))
        page = max(page, 1)
        limit = max(1, min(limit, MAX_LIMIT))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


def parse_sort(default="name"):
    sort = request.args.get("sort", default)
    desc = sort.startswith("-")
    key = sort[1:] if desc else sort
    if key not in ("name", "email"):
        abort(400, description="Unsupported sort field. Allowed: name, email")
    column = User.name if key == "name" else User.email
    return (column.desc() if desc else column.asc(),)


@bp.get("/users")
@roles_required(["admin"])
def list_users():
    """
    List all accounts - admin
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200: { description: OK }
      403: { description: Forbidden }
    """
    session = storage.get_session()
    page, limit = parse_pagination()
    order_by = parse_sort()

    query = session.query(User)

    total = query.count()
    rows = query.order_by(*order_by).offset((page - 1) * limit).limit(limit).all()
    return jsonify(
        {
            "data": account_list_out_schema.dump(rows),
            "meta": {"page": page, "limit": limit, "total": total}
        }
    )


@bp.patch("/users/<user_id>/role")
@roles_required(["admin"])
def set_role(user_id: str):
    """
    Admin-only: change an account's role.
    Takes effect on the account's next rotation; outstanding access tokens keep their claims until expiry.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: path
         name: user_id
         type: string
         required: true
      -  in: body
         name: body
         schema:
           type: object
           properties:
             role: { type: string, enum: [user, admin] }
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    data = role_update_schema.load(request.get_json(silent=True) or {})

    user = storage.get(User, user_id)
    if not user:
        abort(404, description="User Not Found")
    user.role = data["role"]
    user.save()
    logger.info("Role of account %s set to %s", user.id, user.role)
    return jsonify(
      {
        "data": account_out_schema.dump(user)
      }
    ), 200


@bp.delete("/users/<user_id>")
@roles_required(["admin"])
def delete_user(user_id: str):
    """
    Admin-only: delete an account. Its refresh token goes with it.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    user = storage.get(User, user_id)
    if not user:
        abort(404, description="User Not Found")
    body = account_out_schema.dump(user)
    user.delete()
    logger.info("Deleted account %s", user_id)
    return jsonify(
      {
        "message": "User deleted Successfully",
        "data": body
      }
    ), 200
