"""
Unit tests for the recurring template lifecycle manager.

Tests:
- Draft and confirmed creation
- Time/date range rules and rule canonicalisation
- Confirm and update with template conflicts
- Propagation to future solidified commitments
- Skip day addition and removal
"""

import uuid
from datetime import date, datetime, time, timezone

import pytest
from sqlalchemy.orm import Session

from event_planner.exceptions import (
    AlreadyConfirmed,
    ErrorCode,
    InvalidRecurrenceRule,
    InvalidSkipDay,
    InvalidTimeRange,
    MissingRequiredField,
    SchedulingConflict,
    TemplateNotFound,
)
from event_planner.models import Category, Commitment, Owner, RecurringTemplate
from event_planner.services.schemas import RecurringTemplateCreate, RecurringTemplateUpdate
from event_planner.services.templates import RecurringTemplateManager


def at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 1, day, hour, minute, tzinfo=timezone.utc)


def standup(category: Category, **kwargs) -> RecurringTemplateCreate:
    values = dict(
        name="Standup",
        start_time=time(9, 0),
        end_time=time(10, 0),
        start_date=date(2024, 1, 1),
        category_id=category.id,
        recurrence_rule="WEEKLY:MONDAY",
    )
    values.update(kwargs)
    return RecurringTemplateCreate(**values)


def add_instance(session: Session, template: RecurringTemplate, start: datetime, end: datetime,
                 completed: bool = False) -> Commitment:
    commitment = Commitment(
        owner_id=template.owner_id,
        name=template.name,
        start_time=start,
        end_time=end,
        category_id=template.category_id,
        recurring_template_id=template.id,
        provisional=False,
        completed=completed,
    )
    session.add(commitment)
    session.flush()
    return commitment


class TestCreate:
    """Test template creation."""

    def test_create_empty_draft(self, templates: RecurringTemplateManager, owner: Owner, uncategorized: Category):
        draft = templates.create(owner.id, RecurringTemplateCreate(provisional=True))

        assert draft.provisional is True
        assert draft.recurrence_rule is None
        assert draft.category_id == uncategorized.id

    def test_draft_keeps_raw_rule_text(self, templates: RecurringTemplateManager, owner: Owner):
        draft = templates.create(owner.id, RecurringTemplateCreate(recurrence_rule="weekly:funday", provisional=True))

        assert draft.recurrence_summary == "weekly:funday"

    def test_create_confirmed_canonicalises_rule(
        self, templates: RecurringTemplateManager, owner: Owner, category: Category
    ):
        template = templates.create(owner.id, standup(category, end_date=date(2024, 3, 1)))

        assert template.provisional is False
        assert template.recurrence_summary == "FREQ=WEEKLY;INTERVAL=1;BYDAY=MO;DTSTART=20240101;UNTIL=20240301"

    def test_category_defaults_to_uncategorized(
        self, templates: RecurringTemplateManager, owner: Owner, category: Category, uncategorized: Category
    ):
        template = templates.create(owner.id, standup(category, category_id=None))

        assert template.category_id == uncategorized.id

    def test_skip_days_stored(self, templates: RecurringTemplateManager, owner: Owner, category: Category):
        template = templates.create(owner.id, standup(category, skip_days={date(2024, 1, 15)}))

        assert template.skip_days == frozenset({date(2024, 1, 15)})

    @pytest.mark.parametrize("missing,code", [
        ("name", ErrorCode.MISSING_NAME),
        ("start_time", ErrorCode.MISSING_START_TIME),
        ("end_time", ErrorCode.MISSING_END_TIME),
        ("start_date", ErrorCode.MISSING_START_DATE),
        ("recurrence_rule", ErrorCode.MISSING_RECURRENCE_RULE),
    ])
    def test_missing_required_field(self, templates: RecurringTemplateManager, owner: Owner, category: Category,
                                    missing, code):
        with pytest.raises(MissingRequiredField) as exc_info:
            templates.create(owner.id, standup(category, **{missing: None}))

        assert exc_info.value.code == code

    def test_end_date_before_start_date(self, templates: RecurringTemplateManager, owner: Owner, category: Category):
        with pytest.raises(InvalidTimeRange) as exc_info:
            templates.create(owner.id, standup(category, end_date=date(2023, 12, 31)))

        assert exc_info.value.code == ErrorCode.INVALID_DATE_RANGE

    def test_single_date_must_start_before_end(
        self, templates: RecurringTemplateManager, owner: Owner, category: Category
    ):
        with pytest.raises(InvalidTimeRange) as exc_info:
            templates.create(owner.id, standup(
                category, start_time=time(22, 0), end_time=time(1, 0), end_date=date(2024, 1, 1)
            ))

        assert exc_info.value.code == ErrorCode.INVALID_TIME_RANGE

    def test_midnight_crossing_allowed_over_several_dates(
        self, templates: RecurringTemplateManager, owner: Owner, category: Category
    ):
        template = templates.create(owner.id, standup(category, start_time=time(22, 0), end_time=time(1, 0)))

        assert template.crosses_midnight is True

    def test_invalid_rule(self, templates: RecurringTemplateManager, owner: Owner, category: Category):
        with pytest.raises(InvalidRecurrenceRule) as exc_info:
            templates.create(owner.id, standup(category, recurrence_rule="WEEKLY:FUNDAY"))

        assert exc_info.value.code == ErrorCode.INVALID_DAY_OF_WEEK

    def test_conflicting_template(self, templates: RecurringTemplateManager, owner: Owner, category: Category):
        first = templates.create(owner.id, standup(category))

        with pytest.raises(SchedulingConflict) as exc_info:
            templates.create(owner.id, standup(category, start_time=time(9, 30), end_time=time(10, 30)))

        assert exc_info.value.conflicting is first


class TestConfirm:
    """Test confirming draft templates."""

    def test_confirm_canonicalises(self, templates: RecurringTemplateManager, owner: Owner, category: Category):
        draft = templates.create(owner.id, standup(category, recurrence_rule="MONTHLY:2:TUESDAY", provisional=True))

        confirmed = templates.confirm(draft.id)

        assert confirmed.provisional is False
        assert confirmed.recurrence_summary == "FREQ=MONTHLY;INTERVAL=1;BYDAY=2TU;DTSTART=20240101"

    def test_failed_confirm_leaves_draft(self, templates: RecurringTemplateManager, owner: Owner, category: Category):
        draft = templates.create(owner.id, standup(category, recurrence_rule="MONTHLY:9:TUESDAY", provisional=True))

        with pytest.raises(InvalidRecurrenceRule):
            templates.confirm(draft.id)

        assert draft.provisional is True
        assert draft.recurrence_summary == "MONTHLY:9:TUESDAY"

    def test_confirm_twice(self, templates: RecurringTemplateManager, owner: Owner, category: Category):
        template = templates.create(owner.id, standup(category))

        with pytest.raises(AlreadyConfirmed):
            templates.confirm(template.id)

    def test_confirm_conflicting_draft(self, templates: RecurringTemplateManager, owner: Owner, category: Category):
        templates.create(owner.id, standup(category))
        draft = templates.create(owner.id, standup(category, provisional=True))

        with pytest.raises(SchedulingConflict):
            templates.confirm(draft.id)

        assert draft.provisional is True


class TestUpdateAndPropagation:
    """Test updates and propagation (now is Wednesday 2024-01-10 12:00 UTC)."""

    @pytest.fixture
    def template_with_instances(self, db_session: Session, templates: RecurringTemplateManager, owner: Owner,
                                category: Category):
        template = templates.create(owner.id, standup(category))
        instances = {
            "past": add_instance(db_session, template, at(8, 9), at(8, 10)),
            "next": add_instance(db_session, template, at(15, 9), at(15, 10)),
            "later": add_instance(db_session, template, at(22, 9), at(22, 10)),
            "done": add_instance(db_session, template, at(29, 9), at(29, 10), completed=True),
        }
        return template, instances

    def test_rename_propagates_to_future(self, templates: RecurringTemplateManager, template_with_instances):
        template, instances = template_with_instances

        result = templates.update(template.id, RecurringTemplateUpdate(name="Daily sync"))

        assert result.template.name == "Daily sync"
        assert result.propagated_count == 2
        assert instances["next"].name == "Daily sync"
        assert instances["later"].name == "Daily sync"
        assert instances["past"].name == "Standup"
        assert instances["done"].name == "Standup"

    def test_start_time_change_moves_start(self, templates: RecurringTemplateManager,
                                           template_with_instances):
        template, instances = template_with_instances

        result = templates.update(template.id, RecurringTemplateUpdate(start_time=time(8, 0)))

        assert result.propagated_count == 2
        assert instances["next"].start_time == at(15, 8)
        assert instances["next"].end_time == at(15, 10)
        assert instances["past"].start_time == at(8, 9)

    def test_end_time_change_propagates(self, templates: RecurringTemplateManager, template_with_instances):
        template, instances = template_with_instances

        result = templates.update(template.id, RecurringTemplateUpdate(end_time=time(10, 30)))

        assert result.propagated_count == 2
        assert instances["next"].start_time == at(15, 9)
        assert instances["next"].end_time == at(15, 10, 30)
        assert instances["done"].end_time == at(29, 10)

    def test_start_change_into_midnight_crossing(self, templates: RecurringTemplateManager,
                                                 template_with_instances):
        """11:00 to 10:00 crosses midnight, so the end moves to the next day."""
        template, instances = template_with_instances

        result = templates.update(template.id, RecurringTemplateUpdate(start_time=time(11, 0)))

        assert result.propagated_count == 2
        assert template.start_time == time(11, 0)
        assert instances["next"].start_time == at(15, 11)
        assert instances["next"].end_time == at(16, 10)
        assert instances["next"].duration_minutes == 23 * 60

    def test_start_change_out_of_midnight_crossing(self, db_session: Session, templates: RecurringTemplateManager,
                                                   owner: Owner, category: Category):
        template = templates.create(owner.id, standup(category, start_time=time(22, 0), end_time=time(1, 0)))
        instance = add_instance(db_session, template, at(15, 22), at(16, 1))

        result = templates.update(template.id, RecurringTemplateUpdate(start_time=time(0, 30)))

        assert result.propagated_count == 1
        assert instance.start_time == at(15, 0, 30)
        assert instance.end_time == at(15, 1)
        assert instance.duration_minutes == 30

    def test_category_change_propagates(self, db_session: Session, templates: RecurringTemplateManager,
                                        owner: Owner, category: Category, template_with_instances):
        template, instances = template_with_instances
        errands = Category(owner_id=owner.id, name="Errands")
        db_session.add(errands)
        db_session.flush()

        result = templates.update(template.id, RecurringTemplateUpdate(category_id=errands.id))

        assert result.propagated_count == 2
        assert instances["next"].category_id == errands.id
        assert instances["past"].category_id == category.id

    def test_rejected_propagation_writes_nothing(self, monkeypatch, templates: RecurringTemplateManager,
                                                 template_with_instances):
        template, instances = template_with_instances
        monkeypatch.setattr(
            RecurringTemplate, "occurrence_bounds", lambda self, day, zone: (at(15, 11), at(15, 10))
        )

        with pytest.raises(InvalidTimeRange):
            templates.update(template.id, RecurringTemplateUpdate(name="Late sync", start_time=time(11, 0)))

        assert template.name == "Standup"
        assert template.start_time == time(9, 0)
        assert instances["next"].name == "Standup"
        assert instances["next"].start_time == at(15, 9)

    def test_description_change_not_propagated(self, templates: RecurringTemplateManager, template_with_instances):
        template, instances = template_with_instances

        result = templates.update(template.id, RecurringTemplateUpdate(description="Bring notes"))

        assert result.propagated_count == 0
        assert instances["next"].description is None

    def test_unchanged_update(self, templates: RecurringTemplateManager, template_with_instances):
        template, _ = template_with_instances

        result = templates.update(template.id, RecurringTemplateUpdate(name="Standup"))

        assert result.propagated_count == 0

    def test_conflicting_update_leaves_template_untouched(
        self, templates: RecurringTemplateManager, owner: Owner, category: Category
    ):
        templates.create(owner.id, standup(category, name="Gym", start_time=time(7, 0), end_time=time(8, 0)))
        template = templates.create(owner.id, standup(category))

        with pytest.raises(SchedulingConflict):
            templates.update(template.id, RecurringTemplateUpdate(name="Early", start_time=time(7, 30)))

        assert template.name == "Standup"
        assert template.start_time == time(9, 0)

    def test_date_change_re_anchors_rule(self, templates: RecurringTemplateManager, owner: Owner,
                                         category: Category):
        template = templates.create(owner.id, standup(category))

        templates.update(template.id, RecurringTemplateUpdate(start_date=date(2024, 2, 5)))

        assert template.recurrence_rule.parsed.start_date == date(2024, 2, 5)

    def test_draft_update_is_not_validated(self, templates: RecurringTemplateManager, owner: Owner):
        draft = templates.create(owner.id, RecurringTemplateCreate(name="Idea", provisional=True))

        result = templates.update(draft.id, RecurringTemplateUpdate(name=None, recurrence_rule="nonsense"))

        assert result.template.name is None
        assert result.propagated_count == 0

    def test_unknown_template(self, templates: RecurringTemplateManager):
        with pytest.raises(TemplateNotFound):
            templates.update(uuid.uuid4(), RecurringTemplateUpdate(name="x"))


class TestSkipDays:
    """Test skip day management (today is 2024-01-10 in UTC)."""

    def test_add_future_skip_day(self, templates: RecurringTemplateManager, owner: Owner, category: Category):
        template = templates.create(owner.id, standup(category))

        templates.add_skip_days(template.id, {date(2024, 1, 15), date(2024, 1, 10)})

        assert template.skip_days == frozenset({date(2024, 1, 10), date(2024, 1, 15)})

    def test_add_past_skip_day(self, templates: RecurringTemplateManager, owner: Owner, category: Category):
        template = templates.create(owner.id, standup(category))

        with pytest.raises(InvalidSkipDay) as exc_info:
            templates.add_skip_days(template.id, {date(2024, 1, 8), date(2024, 1, 15)})

        assert exc_info.value.code == ErrorCode.INVALID_SKIP_DAY_ADDITION
        assert exc_info.value.dates == {date(2024, 1, 8)}
        assert template.skip_days == frozenset()

    def test_remove_past_skip_day(self, templates: RecurringTemplateManager, owner: Owner, category: Category):
        template = templates.create(owner.id, standup(category, skip_days={date(2024, 1, 8)}))

        with pytest.raises(InvalidSkipDay) as exc_info:
            templates.remove_skip_days(template.id, {date(2024, 1, 8)})

        assert exc_info.value.code == ErrorCode.INVALID_SKIP_DAY_REMOVAL

    def test_remove_skip_day(self, templates: RecurringTemplateManager, owner: Owner, category: Category):
        template = templates.create(owner.id, standup(category, skip_days={date(2024, 1, 15), date(2024, 1, 22)}))

        templates.remove_skip_days(template.id, {date(2024, 1, 15)})

        assert template.skip_days == frozenset({date(2024, 1, 22)})

    def test_conflicting_removal_rejected_whole(
        self, db_session: Session, templates: RecurringTemplateManager, owner: Owner, category: Category
    ):
        template = templates.create(owner.id, standup(category, skip_days={date(2024, 1, 15), date(2024, 1, 22)}))
        db_session.add(Commitment(
            owner_id=owner.id, name="Dentist", start_time=at(22, 9, 30), end_time=at(22, 10, 30),
            category_id=category.id, provisional=False, completed=False,
        ))
        db_session.flush()

        with pytest.raises(SchedulingConflict):
            templates.remove_skip_days(template.id, {date(2024, 1, 15), date(2024, 1, 22)})

        assert template.skip_days == frozenset({date(2024, 1, 15), date(2024, 1, 22)})


class TestDelete:
    """Test template deletion."""

    def test_solidified_commitments_survive(self, db_session: Session, templates: RecurringTemplateManager,
                                            owner: Owner, category: Category):
        template = templates.create(owner.id, standup(category))
        instance = add_instance(db_session, template, at(15, 9), at(15, 10))

        templates.delete(template.id)
        db_session.refresh(instance)

        assert instance.name == "Standup"
        assert instance.recurring_template_id is None
        with pytest.raises(TemplateNotFound):
            templates.get(template.id)

    def test_delete_drafts(self, templates: RecurringTemplateManager, owner: Owner, category: Category):
        kept = templates.create(owner.id, standup(category))
        templates.create(owner.id, RecurringTemplateCreate(provisional=True))

        assert templates.delete_drafts(owner.id) == 1
        assert templates.list_drafts(owner.id) == []
        assert templates.get(kept.id) is kept
