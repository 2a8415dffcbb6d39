# coachplan/infrastructure/postgres_dal.py
"""
The single, consolidated Data Access Layer for all PostgreSQL interactions.
This class implements every repository port (schedules, plans, templates and
completion writes) on top of a shared psycopg connection pool.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool, PoolTimeout

from coachplan.application.exceptions import (
    ApplicationError,
    ConflictError,
    DataAccessError,
    NotFoundError,
    RemoteSyncError,
)
from coachplan.config import get_env, settings
from coachplan.domain.entities import (
    DaySchedule,
    EntityKind,
    Exercise,
    PlanStatus,
    ReminderThreshold,
    WorkoutBlock,
    WorkoutPlan,
    WorkoutTemplate,
)
from coachplan.domain.repositories import (
    CompletionRemote,
    PlanRepository,
    ScheduleRepository,
    TemplateRepository,
)
from coachplan.domain.week_keys import WeekKey
from coachplan.infrastructure import log_utils
from coachplan.infrastructure.db_conn import get_database_url, statement_timeout_option
from coachplan.infrastructure.mappers import ScheduleMapper, ScheduleMappingError

SCHEMA_PATH = Path(__file__).with_name("schema.sql")

_COMPLETION_TABLES = {
    EntityKind.EXERCISE: "exercises",
    EntityKind.BLOCK: "workout_blocks",
    EntityKind.DAY: "day_schedules",
}

_EXERCISE_COLUMNS = (
    "name",
    "video_link",
    "order_index",
    "sets",
    "reps",
    "rest_seconds",
    "load",
    "executed_load",
    "notes",
    "completed",
    "group_id",
    "group_type",
    "order_in_group",
    "group_rest_seconds",
)

_BLOCK_COLUMNS = (
    "type",
    "name",
    "description",
    "position",
    "order_index",
    "estimated_minutes",
    "completed",
    "config",
)

_EXERCISE_EDIT_COLUMNS = tuple(column for column in _EXERCISE_COLUMNS if column != "completed")
_BLOCK_EDIT_COLUMNS = tuple(column for column in _BLOCK_COLUMNS if column not in ("type", "completed"))


def _update_statement(table: str, columns: Sequence[str]) -> sql.Composed:
    return sql.SQL("UPDATE {table} SET {assignments} WHERE id = {id};").format(
        table=sql.Identifier(table),
        assignments=sql.SQL(", ").join(
            sql.SQL("{} = {}").format(sql.Identifier(column), sql.Placeholder(column)) for column in columns
        ),
        id=sql.Placeholder("id"),
    )


# --- Connection Pool Management ---
_pool: ConnectionPool | None = None


def _create_pool() -> ConnectionPool:
    db_url = get_database_url()
    timeout = float(get_env("REMOTE_TIMEOUT_SECONDS", default=settings.REMOTE_TIMEOUT_SECONDS))
    return ConnectionPool(
        conninfo=db_url,
        min_size=settings.DB_POOL_MIN_SIZE,
        max_size=settings.DB_POOL_MAX_SIZE,
        timeout=timeout,
        kwargs={"options": statement_timeout_option(timeout)},
        open=True,
    )


def get_pool() -> ConnectionPool:
    global _pool
    if _pool is None:
        _pool = _create_pool()
    return _pool


@contextmanager
def _translate_errors(
    operation: str,
    entity: Optional[str] = None,
    entity_id: Any = None,
) -> Iterator[None]:
    """Turn driver, pool and mapping failures into the application error taxonomy.

    When ``entity`` is given, an id the column type rejects reads as a missing row.
    """
    try:
        yield
    except ApplicationError:
        raise
    except ScheduleMappingError as exc:
        raise DataAccessError(f"{operation}: unreadable row: {exc}") from exc
    except psycopg.errors.UniqueViolation as exc:
        raise ConflictError(f"{operation}: {exc}") from exc
    except psycopg.errors.InvalidTextRepresentation as exc:
        if entity is not None:
            raise NotFoundError(entity, entity_id) from exc
        raise DataAccessError(f"{operation}: invalid value: {exc}") from exc
    except PoolTimeout as exc:
        raise RemoteSyncError(f"{operation}: timed out waiting for a database connection") from exc
    except psycopg.Error as exc:
        raise RemoteSyncError(f"{operation} failed: {exc}") from exc


# --- Data Access Layer ---
class PostgresDal(ScheduleRepository, PlanRepository, TemplateRepository, CompletionRemote):
    """PostgreSQL implementation of the Data Access Layer."""

    supports_transactions = True

    def __init__(self, pool: Optional[ConnectionPool] = None, mapper: Optional[ScheduleMapper] = None):
        self.pool = pool or get_pool()
        self.mapper = mapper or ScheduleMapper()
        self._local = threading.local()

    @contextmanager
    def _get_cursor(
        self,
        operation: str,
        entity: Optional[str] = None,
        entity_id: Any = None,
    ) -> Iterator[Any]:
        """Cursor on the thread's open transaction, or on a fresh pooled connection."""
        with _translate_errors(operation, entity, entity_id):
            active = getattr(self._local, "conn", None)
            if active is not None:
                with active.cursor(row_factory=dict_row) as cur:
                    yield cur
                return

            with self.pool.connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    try:
                        yield cur
                        conn.commit()
                    except Exception:
                        conn.rollback()
                        raise

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed repository calls on one connection, committed together."""
        if getattr(self._local, "conn", None) is not None:
            yield
            return

        with _translate_errors("transaction"):
            with self.pool.connection() as conn:
                conn.autocommit = False
                self._local.conn = conn
                try:
                    yield
                    conn.commit()
                except Exception:
                    conn.rollback()
                    raise
                finally:
                    self._local.conn = None

    def connection(self):
        """Provide a context manager for a pooled database connection."""
        return self.pool.connection()

    def close(self) -> None:
        if self.pool and not self.pool.closed:
            self.pool.close()
            log_utils.info("Database connection pool closed.")

    def apply_schema(self) -> None:
        """Create the tables when they are missing."""
        with self._get_cursor("apply schema") as cur:
            cur.execute(SCHEMA_PATH.read_text(encoding="utf-8"))
        log_utils.info(f"Applied schema from {SCHEMA_PATH.name}.")

    # ----------------------------------------------
    # --- Day schedules ---
    # ----------------------------------------------
    def list_days(self, student_id: str, coach_id: str, week_key: WeekKey) -> List[DaySchedule]:
        query = (
            "SELECT * FROM day_schedules WHERE student_id = %s AND coach_id = %s AND week_start = %s "
            "ORDER BY weekday, order_in_day;"
        )
        with self._get_cursor("list days") as cur:
            cur.execute(query, (student_id, coach_id, week_key.monday))
            return [self.mapper.day_from_row(row) for row in cur.fetchall()]

    def get_day(self, day_id: str) -> Optional[DaySchedule]:
        with self._get_cursor("get day", "DaySchedule", day_id) as cur:
            cur.execute("SELECT * FROM day_schedules WHERE id = %s;", (day_id,))
            row = cur.fetchone()
            return self.mapper.day_from_row(row) if row else None

    def find_day(
        self,
        student_id: str,
        coach_id: str,
        week_key: WeekKey,
        weekday: int,
        order_in_day: int,
    ) -> Optional[DaySchedule]:
        query = (
            "SELECT * FROM day_schedules WHERE student_id = %s AND coach_id = %s AND week_start = %s "
            "AND weekday = %s AND order_in_day = %s;"
        )
        with self._get_cursor("find day") as cur:
            cur.execute(query, (student_id, coach_id, week_key.monday, weekday, order_in_day))
            row = cur.fetchone()
            return self.mapper.day_from_row(row) if row else None

    def insert_day(self, day: DaySchedule) -> DaySchedule:
        # ON CONFLICT keeps an enclosing transaction usable after a lost race.
        query = """
            INSERT INTO day_schedules (
                student_id, coach_id, week_start, weekday, order_in_day,
                name, description, completed, source_template_id
            )
            VALUES (
                %(student_id)s, %(coach_id)s, %(week_start)s, %(weekday)s, %(order_in_day)s,
                %(name)s, %(description)s, %(completed)s, %(source_template_id)s
            )
            ON CONFLICT ON CONSTRAINT day_schedules_slot DO NOTHING
            RETURNING *;
        """
        with self._get_cursor("insert day") as cur:
            cur.execute(query, self.mapper.day_params(day))
            row = cur.fetchone()
            if row is None:
                raise ConflictError(
                    f"Day slot {day.week_key} weekday {day.weekday}/{day.order_in_day} already exists"
                )
            return self.mapper.day_from_row(row)

    def update_day(self, day: DaySchedule) -> None:
        query = (
            "UPDATE day_schedules SET name = %s, description = %s, completed = %s, "
            "source_template_id = %s WHERE id = %s;"
        )
        with self._get_cursor("update day", "DaySchedule", day.id) as cur:
            cur.execute(query, (day.name, day.description, day.completed, day.source_template_id, day.id))
            if cur.rowcount == 0:
                raise NotFoundError("DaySchedule", day.id)

    def list_exercises(self, day_ids: Sequence[str]) -> List[Exercise]:
        if not day_ids:
            return []
        query = (
            "SELECT * FROM exercises WHERE day_schedule_id = ANY(%s::uuid[]) "
            "ORDER BY day_schedule_id, order_index, order_in_group NULLS FIRST;"
        )
        with self._get_cursor("list exercises") as cur:
            cur.execute(query, (list(day_ids),))
            return [self.mapper.exercise_from_row(row) for row in cur.fetchall()]

    def list_blocks(self, day_ids: Sequence[str]) -> List[WorkoutBlock]:
        if not day_ids:
            return []
        query = (
            "SELECT * FROM workout_blocks WHERE day_schedule_id = ANY(%s::uuid[]) "
            "ORDER BY day_schedule_id, order_index;"
        )
        with self._get_cursor("list blocks") as cur:
            cur.execute(query, (list(day_ids),))
            return [self.mapper.block_from_row(row) for row in cur.fetchall()]

    def insert_exercises(self, day_id: str, exercises: Sequence[Exercise]) -> List[Exercise]:
        with self._get_cursor("insert exercises", "DaySchedule", day_id) as cur:
            rows = self._insert_exercise_rows(cur, "exercises", "day_schedule_id", day_id, exercises)
            return [self.mapper.exercise_from_row(row) for row in rows]

    def insert_blocks(self, day_id: str, blocks: Sequence[WorkoutBlock]) -> List[WorkoutBlock]:
        with self._get_cursor("insert blocks", "DaySchedule", day_id) as cur:
            rows = self._insert_block_rows(cur, "workout_blocks", "day_schedule_id", day_id, blocks)
            return [self.mapper.block_from_row(row) for row in rows]

    def delete_exercises(self, day_id: str) -> int:
        with self._get_cursor("delete exercises", "DaySchedule", day_id) as cur:
            cur.execute("DELETE FROM exercises WHERE day_schedule_id = %s;", (day_id,))
            return cur.rowcount

    def delete_blocks(self, day_id: str) -> int:
        with self._get_cursor("delete blocks", "DaySchedule", day_id) as cur:
            cur.execute("DELETE FROM workout_blocks WHERE day_schedule_id = %s;", (day_id,))
            return cur.rowcount

    def update_exercise(self, exercise: Exercise) -> None:
        statement = _update_statement("exercises", _EXERCISE_EDIT_COLUMNS)
        params = self.mapper.exercise_params(exercise.day_schedule_id, exercise)
        params["id"] = exercise.id
        with self._get_cursor("update exercise", "Exercise", exercise.id) as cur:
            cur.execute(statement, params)
            if cur.rowcount == 0:
                raise NotFoundError("Exercise", exercise.id)

    def delete_exercise(self, exercise_id: str) -> None:
        with self._get_cursor("delete exercise", "Exercise", exercise_id) as cur:
            cur.execute("DELETE FROM exercises WHERE id = %s;", (exercise_id,))
            if cur.rowcount == 0:
                raise NotFoundError("Exercise", exercise_id)

    def update_block(self, block: WorkoutBlock) -> None:
        statement = _update_statement("workout_blocks", _BLOCK_EDIT_COLUMNS)
        params = self.mapper.block_params(block.day_schedule_id, block)
        params["config"] = Json(params["config"])
        params["id"] = block.id
        with self._get_cursor("update block", "WorkoutBlock", block.id) as cur:
            cur.execute(statement, params)
            if cur.rowcount == 0:
                raise NotFoundError("WorkoutBlock", block.id)

    def delete_block(self, block_id: str) -> None:
        with self._get_cursor("delete block", "WorkoutBlock", block_id) as cur:
            cur.execute("DELETE FROM workout_blocks WHERE id = %s;", (block_id,))
            if cur.rowcount == 0:
                raise NotFoundError("WorkoutBlock", block_id)

    def _insert_exercise_rows(
        self,
        cur: Any,
        table: str,
        owner_column: str,
        owner_id: str,
        exercises: Sequence[Exercise],
    ) -> List[Dict[str, Any]]:
        columns = (owner_column, *_EXERCISE_COLUMNS)
        statement = sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values}) RETURNING *;").format(
            table=sql.Identifier(table),
            columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
            values=sql.SQL(", ").join(sql.Placeholder(name) for name in ("owner_id", *_EXERCISE_COLUMNS)),
        )
        rows: List[Dict[str, Any]] = []
        for exercise in exercises:
            cur.execute(statement, self.mapper.exercise_params(owner_id, exercise))
            rows.append(cur.fetchone())
        return rows

    def _insert_block_rows(
        self,
        cur: Any,
        table: str,
        owner_column: str,
        owner_id: str,
        blocks: Sequence[WorkoutBlock],
    ) -> List[Dict[str, Any]]:
        columns = (owner_column, *_BLOCK_COLUMNS)
        statement = sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values}) RETURNING *;").format(
            table=sql.Identifier(table),
            columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
            values=sql.SQL(", ").join(sql.Placeholder(name) for name in ("owner_id", *_BLOCK_COLUMNS)),
        )
        rows: List[Dict[str, Any]] = []
        for block in blocks:
            params = self.mapper.block_params(owner_id, block)
            params["config"] = Json(params["config"])
            cur.execute(statement, params)
            rows.append(cur.fetchone())
        return rows

    # ----------------------------------------------
    # --- Plans ---
    # ----------------------------------------------
    def get_plan(self, plan_id: str) -> Optional[WorkoutPlan]:
        with self._get_cursor("get plan", "WorkoutPlan", plan_id) as cur:
            cur.execute("SELECT * FROM workout_plans WHERE id = %s;", (plan_id,))
            row = cur.fetchone()
            return self.mapper.plan_from_row(row) if row else None

    def get_active_plan(self, student_id: str) -> Optional[WorkoutPlan]:
        query = (
            "SELECT * FROM workout_plans WHERE student_id = %s AND status = 'active' "
            "ORDER BY created_at DESC LIMIT 1;"
        )
        with self._get_cursor("get active plan") as cur:
            cur.execute(query, (student_id,))
            row = cur.fetchone()
            return self.mapper.plan_from_row(row) if row else None

    def list_plans(self, student_id: str) -> List[WorkoutPlan]:
        query = "SELECT * FROM workout_plans WHERE student_id = %s ORDER BY created_at DESC, start_date DESC;"
        with self._get_cursor("list plans") as cur:
            cur.execute(query, (student_id,))
            return [self.mapper.plan_from_row(row) for row in cur.fetchall()]

    def list_active_plans(self) -> List[WorkoutPlan]:
        with self._get_cursor("list active plans") as cur:
            cur.execute("SELECT * FROM workout_plans WHERE status = 'active' ORDER BY start_date;")
            return [self.mapper.plan_from_row(row) for row in cur.fetchall()]

    def insert_plan(self, plan: WorkoutPlan) -> WorkoutPlan:
        query = """
            INSERT INTO workout_plans (student_id, coach_id, name, start_date, duration_weeks, notes, status)
            VALUES (%(student_id)s, %(coach_id)s, %(name)s, %(start_date)s, %(duration_weeks)s, %(notes)s, %(status)s)
            RETURNING *;
        """
        with self._get_cursor("insert plan") as cur:
            cur.execute(query, self.mapper.plan_params(plan))
            row = cur.fetchone()
            created = self.mapper.plan_from_row(row)
        log_utils.debug(f"Inserted plan {created.id} for student {plan.student_id}.")
        return created

    def update_plan_status(self, plan_id: str, status: PlanStatus) -> None:
        with self._get_cursor("update plan status", "WorkoutPlan", plan_id) as cur:
            cur.execute("UPDATE workout_plans SET status = %s WHERE id = %s;", (PlanStatus(status).value, plan_id))
            if cur.rowcount == 0:
                raise NotFoundError("WorkoutPlan", plan_id)

    def set_reminder_flag(self, plan_id: str, threshold: ReminderThreshold) -> None:
        statement = sql.SQL("UPDATE workout_plans SET {flag} = true WHERE id = %s;").format(
            flag=sql.Identifier(ReminderThreshold(threshold).flag_name)
        )
        with self._get_cursor("set reminder flag", "WorkoutPlan", plan_id) as cur:
            cur.execute(statement, (plan_id,))
            if cur.rowcount == 0:
                raise NotFoundError("WorkoutPlan", plan_id)

    # ----------------------------------------------
    # --- Templates ---
    # ----------------------------------------------
    def get_template(self, template_id: str) -> Optional[WorkoutTemplate]:
        with self._get_cursor("get template", "WorkoutTemplate", template_id) as cur:
            cur.execute("SELECT * FROM workout_templates WHERE id = %s;", (template_id,))
            row = cur.fetchone()
            if row is None:
                return None
            cur.execute(
                "SELECT * FROM template_exercises WHERE template_id = %s ORDER BY order_index, order_in_group NULLS FIRST;",
                (template_id,),
            )
            exercise_rows = cur.fetchall()
            cur.execute(
                "SELECT * FROM template_blocks WHERE template_id = %s ORDER BY order_index;",
                (template_id,),
            )
            block_rows = cur.fetchall()
            return self.mapper.template_from_rows(row, exercise_rows, block_rows)

    def list_templates(self, coach_id: str) -> List[WorkoutTemplate]:
        with self._get_cursor("list templates") as cur:
            cur.execute("SELECT * FROM workout_templates WHERE coach_id = %s ORDER BY name;", (coach_id,))
            return [self.mapper.template_from_rows(row, [], []) for row in cur.fetchall()]

    def insert_template(self, template: WorkoutTemplate) -> WorkoutTemplate:
        with self.transaction():
            with self._get_cursor("insert template") as cur:
                cur.execute(
                    "INSERT INTO workout_templates (coach_id, name, description, category) "
                    "VALUES (%s, %s, %s, %s) RETURNING *;",
                    (template.coach_id, template.name, template.description, template.category),
                )
                row = cur.fetchone()
                return self._write_template_children(cur, row, template)

    def update_template(self, template: WorkoutTemplate) -> WorkoutTemplate:
        """Replace a template's metadata and children."""
        with self.transaction():
            with self._get_cursor("update template", "WorkoutTemplate", template.id) as cur:
                cur.execute(
                    "UPDATE workout_templates SET name = %s, description = %s, category = %s "
                    "WHERE id = %s RETURNING *;",
                    (template.name, template.description, template.category, template.id),
                )
                row = cur.fetchone()
                if row is None:
                    raise NotFoundError("WorkoutTemplate", template.id)
                cur.execute("DELETE FROM template_exercises WHERE template_id = %s;", (template.id,))
                cur.execute("DELETE FROM template_blocks WHERE template_id = %s;", (template.id,))
                return self._write_template_children(cur, row, template)

    def delete_template(self, template_id: str) -> None:
        with self._get_cursor("delete template", "WorkoutTemplate", template_id) as cur:
            cur.execute("DELETE FROM workout_templates WHERE id = %s;", (template_id,))
            if cur.rowcount == 0:
                raise NotFoundError("WorkoutTemplate", template_id)

    def _write_template_children(
        self, cur: Any, row: Dict[str, Any], template: WorkoutTemplate
    ) -> WorkoutTemplate:
        template_id = str(row["id"])
        exercise_rows = self._insert_exercise_rows(
            cur, "template_exercises", "template_id", template_id, template.exercises
        )
        block_rows = self._insert_block_rows(cur, "template_blocks", "template_id", template_id, template.blocks)
        return self.mapper.template_from_rows(row, exercise_rows, block_rows)

    # ----------------------------------------------
    # --- Completion writes ---
    # ----------------------------------------------
    def set_completed(self, kind: EntityKind, entity_id: str, completed: bool) -> None:
        table = _COMPLETION_TABLES[EntityKind(kind)]
        statement = sql.SQL("UPDATE {table} SET completed = %s WHERE id = %s;").format(
            table=sql.Identifier(table)
        )
        with self._get_cursor(f"set {table} completed", EntityKind(kind).value, entity_id) as cur:
            cur.execute(statement, (bool(completed), entity_id))
            if cur.rowcount == 0:
                raise NotFoundError(EntityKind(kind).value, entity_id)


__all__ = ["PostgresDal", "get_pool"]
