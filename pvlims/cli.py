# pvlims/cli.py

"""
운영 관리용 명령줄 도구입니다.

    pvlims-admin init-db
    pvlims-admin create-admin -u admin -e admin@example.com
    pvlims-admin set-password -u admin
"""

import asyncio

import typer
from pydantic import ValidationError as PydanticValidationError

from pvlims.core.config import configure_logging
from pvlims.core.database import Database
from pvlims.core.exceptions import LimsError
from pvlims.domains.usr import crud as usr_crud
from pvlims.domains.usr import schemas as usr_schemas
from pvlims.domains.usr.models import UserRole

cli = typer.Typer(help="PV LIMS administration commands.")


async def _init_db() -> None:
    database = Database.from_settings()
    try:
        await database.create_all()
    finally:
        await database.dispose()


async def _create_admin(user_in: usr_schemas.UserRegister) -> str:
    database = Database.from_settings()
    try:
        async with database.session() as db:
            user = await usr_crud.user.register(db, obj_in=user_in, role=UserRole.ADMIN)
            return str(user.id)
    finally:
        await database.dispose()


async def _set_password(username: str, password: str) -> bool:
    database = Database.from_settings()
    try:
        async with database.session() as db:
            user = await usr_crud.user.get_by_username(db, username=username)
            if user is None:
                return False
            await usr_crud.user.set_password(db, user=user, password=password)
            return True
    finally:
        await database.dispose()


@cli.command("init-db")
def init_db():
    """스키마와 테이블을 생성합니다 (기존 테이블은 유지)."""
    configure_logging()
    asyncio.run(_init_db())
    typer.echo("데이터베이스 테이블 생성 완료.")


@cli.command("create-admin")
def create_admin(
    username: str = typer.Option(
        ..., "--username", "-u",
        prompt="관리자 사용자명(ID)을 입력하세요",
        help="로그인 시 사용할 사용자명(ID)입니다.",
    ),
    email: str = typer.Option(
        ..., "--email", "-e",
        prompt="관리자 이메일을 입력하세요",
        help="생성할 관리자 계정의 이메일 주소입니다.",
    ),
    password: str = typer.Option(
        ..., "--password", "-p",
        prompt="관리자 비밀번호를 입력하세요",
        hide_input=True,
        confirmation_prompt=True,
        help="생성할 관리자 계정의 비밀번호입니다. (최소 8자 이상)",
    ),
    full_name: str = typer.Option("Administrator", "--name", "-n", help="관리자의 이름입니다."),
):
    """관리자(admin) 역할의 계정을 생성합니다."""
    configure_logging()
    try:
        user_in = usr_schemas.UserRegister(username=username, email=email, password=password, full_name=full_name)
    except PydanticValidationError as e:
        typer.echo(f"오류: 입력값이 올바르지 않습니다.\n{e}", err=True)
        raise typer.Exit(code=1)

    try:
        user_id = asyncio.run(_create_admin(user_in))
    except LimsError as e:
        typer.echo(f"오류: {e.detail}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"관리자 계정이 생성되었습니다: {username} ({user_id})")


@cli.command("set-password")
def set_password(
    username: str = typer.Option("admin", "--username", "-u", help="비밀번호를 변경할 사용자명입니다."),
    password: str = typer.Option(
        ..., "--password", "-p",
        prompt="새 비밀번호를 입력하세요",
        hide_input=True,
        confirmation_prompt=True,
    ),
):
    """현재 비밀번호 확인 없이 사용자의 비밀번호를 재설정합니다."""
    if len(password) < 8:
        typer.echo("오류: 비밀번호는 최소 8자 이상이어야 합니다.", err=True)
        raise typer.Exit(code=1)

    configure_logging()
    if not asyncio.run(_set_password(username, password)):
        typer.echo(f"오류: 사용자를 찾을 수 없습니다: {username}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"'{username}' 사용자의 비밀번호가 변경되었습니다.")


if __name__ == "__main__":
    cli()
