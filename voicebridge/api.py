"""HTTP routes for managing chat robots."""

import functools
import json

from aiohttp import web

from .repository import ChatRobot, RepositoryError

PREFIX = "/api/robots"

_dumps = functools.partial(json.dumps, ensure_ascii=False)


def _reply(status, code, message, data=None):
    return web.json_response(
        {"code": code, "message": message, "data": data}, status=status, dumps=_dumps
    )


async def _read_robot(request):
    """Decode the request body into a robot, or None when it is not a valid robot."""
    try:
        data = await request.json()
    except ValueError:
        return None
    if data is None:
        return ChatRobot()
    try:
        return ChatRobot.from_dict(data)
    except ValueError:
        return None


def register_routes(app, repo):
    """Add the robot management routes to the aiohttp application ``app``."""

    async def add_assistant(request):
        robot = await _read_robot(request)
        if robot is None:
            return _reply(400, 0, "参数错误")
        try:
            repo.create_robot(robot)
        except RepositoryError:
            return _reply(500, 0, "创建失败")
        return _reply(200, 1, "创建成功")

    async def delete_assistant(request):
        robot = await _read_robot(request)
        if robot is None:
            return _reply(400, 0, "获取参数错误")
        if robot.id == 0:
            return _reply(400, 0, "缺少ID参数")
        try:
            repo.delete_robot(robot.id)
        except RepositoryError:
            return _reply(500, 0, "删除失败")
        return _reply(200, 1, "删除成功")

    async def update_assistant(request):
        robot = await _read_robot(request)
        if robot is None:
            return _reply(400, 0, "参数错误")
        try:
            repo.update_robot(robot)
        except RepositoryError:
            return _reply(500, 0, "更新失败")
        return _reply(200, 1, "更新成功")

    async def get_assistants(request):
        try:
            robots = repo.get_all_robots()
        except RepositoryError:
            return _reply(500, 0, "查询失败")
        return _reply(200, 1, "查询成功", [robot.to_dict() for robot in robots])

    app.router.add_post(f"{PREFIX}/addAssistant", add_assistant)
    app.router.add_post(f"{PREFIX}/deleteAssistant", delete_assistant)
    app.router.add_post(f"{PREFIX}/updateAssistant", update_assistant)
    app.router.add_get(f"{PREFIX}/getAssistant", get_assistants)
    return app