"""create medication scheduling and adherence tables

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '1a2b3c4d5e6f'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """创建药品、库存、计划、时间槽、提醒、提醒药品、用药历史七张表"""
    op.create_table(
        'medications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='药品ID'),
        sa.Column('user_id', sa.String(length=50), nullable=False, comment='用户ID'),
        sa.Column('name', sa.String(length=200), nullable=False, comment='药品名称'),
        sa.Column('dosage', sa.String(length=100), nullable=True, comment='规格/剂量文本（如：500mg、1片）'),
        sa.Column('icon', sa.String(length=50), nullable=False, comment='分类/图标标签'),
        sa.Column('color', sa.String(length=20), nullable=False, comment='显示颜色'),
        sa.Column('description', sa.Text(), nullable=True, comment='描述'),
        sa.Column('side_effects', sa.Text(), nullable=True, comment='副作用说明'),
        sa.Column('active_ingredient', sa.String(length=200), nullable=True, comment='有效成分'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='更新时间'),
        sa.PrimaryKeyConstraint('id', name='pk_medications')
    )
    op.create_index('ix_medications_user_id', 'medications', ['user_id'], unique=False)

    op.create_table(
        'medication_inventory',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='库存ID'),
        sa.Column('medication_id', sa.Integer(), nullable=False, comment='药品ID'),
        sa.Column('remaining_quantity', sa.Integer(), nullable=False, comment='剩余数量（始终 >= 0）'),
        sa.Column('unit', sa.String(length=20), nullable=False, comment='单位（tablet/ml/puff等）'),
        sa.Column('refill_threshold', sa.Integer(), nullable=False, comment='补药提醒阈值'),
        sa.Column('last_refill_date', sa.String(length=10), nullable=True, comment='最近补药日期（YYYY-MM-DD）'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='更新时间'),
        sa.ForeignKeyConstraint(
            ['medication_id'], ['medications.id'],
            name='fk_medication_inventory_medication_id_medications', ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_medication_inventory'),
        sa.UniqueConstraint('medication_id', name='uq_medication_inventory_medication_id')
    )

    op.create_table(
        'medication_schedules',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='计划ID'),
        sa.Column('medication_id', sa.Integer(), nullable=False, comment='药品ID'),
        sa.Column('frequency', sa.String(length=20), nullable=False, comment='用药频率'),
        sa.Column('start_date', sa.String(length=10), nullable=False, comment='开始日期（YYYY-MM-DD）'),
        sa.Column('end_date', sa.String(length=10), nullable=True, comment='结束日期（含当天，可为空）'),
        sa.Column('when_to_take', sa.String(length=200), nullable=True, comment='服用时机（如：饭后）'),
        sa.Column('notes', sa.Text(), nullable=True, comment='备注'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='更新时间'),
        sa.ForeignKeyConstraint(
            ['medication_id'], ['medications.id'],
            name='fk_medication_schedules_medication_id_medications', ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_medication_schedules')
    )
    op.create_index('ix_medication_schedules_medication_id', 'medication_schedules', ['medication_id'], unique=False)
    op.create_index('ix_medication_schedules_start_date', 'medication_schedules', ['start_date'], unique=False)

    op.create_table(
        'medication_times',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='时间槽ID'),
        sa.Column('schedule_id', sa.Integer(), nullable=False, comment='计划ID'),
        sa.Column('time_of_day', sa.String(length=20), nullable=True, comment='时段标签（morning/noon/evening/night）'),
        sa.Column('specific_time', sa.String(length=8), nullable=True, comment='具体时间（HH:MM:SS，按需用药可为空）'),
        sa.Column('dosage', sa.String(length=100), nullable=True, comment='该时间槽的剂量（覆盖药品默认剂量）'),
        sa.ForeignKeyConstraint(
            ['schedule_id'], ['medication_schedules.id'],
            name='fk_medication_times_schedule_id_medication_schedules', ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_medication_times')
    )
    op.create_index('ix_medication_times_schedule_id', 'medication_times', ['schedule_id'], unique=False)

    op.create_table(
        'reminders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='提醒ID'),
        sa.Column('user_id', sa.String(length=50), nullable=False, comment='用户ID'),
        sa.Column('date', sa.String(length=10), nullable=False, comment='日期（YYYY-MM-DD，无时区）'),
        sa.Column('time', sa.String(length=8), nullable=False, comment='提醒时间（HH:MM:SS）'),
        sa.Column('title', sa.String(length=200), nullable=False, comment='标题'),
        sa.Column('description', sa.Text(), nullable=True, comment='描述'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='汇总状态'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='更新时间'),
        sa.PrimaryKeyConstraint('id', name='pk_reminders')
    )
    op.create_index('ix_reminders_user_id', 'reminders', ['user_id'], unique=False)
    op.create_index('ix_reminders_date', 'reminders', ['date'], unique=False)

    op.create_table(
        'reminder_medications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='提醒药品ID'),
        sa.Column('reminder_id', sa.Integer(), nullable=False, comment='提醒ID'),
        sa.Column('medication_id', sa.Integer(), nullable=False, comment='药品ID'),
        sa.Column('time_id', sa.Integer(), nullable=True, comment='来源时间槽ID（按计划生成时记录）'),
        sa.Column('occurrence_date', sa.String(length=10), nullable=True, comment='按计划生成的日期（YYYY-MM-DD，手动创建为空）'),
        sa.Column('schedule_time', sa.String(length=8), nullable=False, comment='计划服用时间（HH:MM:SS）'),
        sa.Column('dosage', sa.String(length=100), nullable=True, comment='剂量'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='剂量状态'),
        sa.Column('taken_at', sa.DateTime(timezone=True), nullable=True, comment='服用时间（仅 taken 时有值）'),
        sa.Column('notes', sa.Text(), nullable=True, comment='备注'),
        sa.ForeignKeyConstraint(
            ['reminder_id'], ['reminders.id'],
            name='fk_reminder_medications_reminder_id_reminders', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['medication_id'], ['medications.id'],
            name='fk_reminder_medications_medication_id_medications'
        ),
        sa.ForeignKeyConstraint(
            ['time_id'], ['medication_times.id'],
            name='fk_reminder_medications_time_id_medication_times', ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_reminder_medications'),
        sa.UniqueConstraint('time_id', 'occurrence_date', name='uq_reminder_medications_time_occurrence')
    )
    op.create_index('ix_reminder_medications_reminder_id', 'reminder_medications', ['reminder_id'], unique=False)
    op.create_index('ix_reminder_medications_medication_id', 'reminder_medications', ['medication_id'], unique=False)
    op.create_index('ix_reminder_medications_time_id', 'reminder_medications', ['time_id'], unique=False)

    op.create_table(
        'medication_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='历史记录ID'),
        sa.Column('user_id', sa.String(length=50), nullable=False, comment='用户ID'),
        sa.Column('medication_id', sa.Integer(), nullable=False, comment='药品ID'),
        sa.Column('reminder_medication_id', sa.Integer(), nullable=True, comment='来源提醒药品ID'),
        sa.Column('taken_date', sa.String(length=10), nullable=False, comment='应服日期（YYYY-MM-DD）'),
        sa.Column('taken_time', sa.String(length=8), nullable=True, comment='应服时间（HH:MM:SS）'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='结果状态'),
        sa.Column('notes', sa.Text(), nullable=True, comment='备注'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='创建时间'),
        sa.ForeignKeyConstraint(
            ['medication_id'], ['medications.id'],
            name='fk_medication_history_medication_id_medications'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_medication_history')
    )
    op.create_index('ix_medication_history_user_id', 'medication_history', ['user_id'], unique=False)
    op.create_index('ix_medication_history_medication_id', 'medication_history', ['medication_id'], unique=False)
    op.create_index(
        'ix_medication_history_reminder_medication_id', 'medication_history', ['reminder_medication_id'], unique=False
    )
    op.create_index('ix_medication_history_taken_date', 'medication_history', ['taken_date'], unique=False)


def downgrade() -> None:
    """删除全部表（按依赖逆序）"""
    op.drop_index('ix_medication_history_taken_date', table_name='medication_history')
    op.drop_index('ix_medication_history_reminder_medication_id', table_name='medication_history')
    op.drop_index('ix_medication_history_medication_id', table_name='medication_history')
    op.drop_index('ix_medication_history_user_id', table_name='medication_history')
    op.drop_table('medication_history')
    op.drop_index('ix_reminder_medications_time_id', table_name='reminder_medications')
    op.drop_index('ix_reminder_medications_medication_id', table_name='reminder_medications')
    op.drop_index('ix_reminder_medications_reminder_id', table_name='reminder_medications')
    op.drop_table('reminder_medications')
    op.drop_index('ix_reminders_date', table_name='reminders')
    op.drop_index('ix_reminders_user_id', table_name='reminders')
    op.drop_table('reminders')
    op.drop_index('ix_medication_times_schedule_id', table_name='medication_times')
    op.drop_table('medication_times')
    op.drop_index('ix_medication_schedules_start_date', table_name='medication_schedules')
    op.drop_index('ix_medication_schedules_medication_id', table_name='medication_schedules')
    op.drop_table('medication_schedules')
    op.drop_table('medication_inventory')
    op.drop_index('ix_medications_user_id', table_name='medications')
    op.drop_table('medications')
