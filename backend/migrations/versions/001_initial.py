"""Initial migration - create all tables

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates all database tables for the Student Information System:
- users: Login identities with role, lockout and reset-token state
- students: Student profiles
- faculty: Faculty profiles
- courses: Course catalog entries
- course_faculty: Faculty assigned to each course
- course_prerequisites: Course-to-course prerequisite links
- enrollments: Course rosters (one row per student per course)

Also creates indexes for common query patterns.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
    ]


def upgrade() -> None:
    # ── Users Table ───────────────────────────────────────────
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('username', sa.String(30), nullable=False, unique=True),
        sa.Column('email', sa.String(254), nullable=False, unique=True),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('role', sa.String(16), nullable=False),
        sa.Column('profile_kind', sa.String(16), nullable=True),
        sa.Column('profile_id', sa.String(36), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('verification_token', sa.Text(), nullable=True),
        sa.Column('login_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('lock_until', sa.DateTime(), nullable=True),
        sa.Column('reset_password_token', sa.Text(), nullable=True),
        sa.Column('reset_password_expires', sa.DateTime(), nullable=True),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        *_timestamps(),
    )

    # ── Students Table ────────────────────────────────────────
    op.create_table(
        'students',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('roll_number', sa.String(32), nullable=False, unique=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('first_name', sa.Text(), nullable=False),
        sa.Column('middle_name', sa.Text(), nullable=True),
        sa.Column('last_name', sa.Text(), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=False),
        sa.Column('gender', sa.String(8), nullable=False),
        sa.Column('email', sa.String(254), nullable=False, unique=True),
        sa.Column('phone', sa.String(32), nullable=False),
        sa.Column('address', sa.JSON(), nullable=True),
        sa.Column('branch', sa.Text(), nullable=False),
        sa.Column('semester', sa.Integer(), nullable=False),
        sa.Column('batch', sa.Text(), nullable=False),
        sa.Column('section', sa.Text(), nullable=True),
        sa.Column('cgpa', sa.Float(), nullable=False, server_default='0'),
        sa.Column('backlog_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('parent_info', sa.JSON(), nullable=True),
        sa.Column('documents', sa.JSON(), nullable=False),
        sa.Column('fees', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    # ── Faculty Table ─────────────────────────────────────────
    op.create_table(
        'faculty',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('employee_id', sa.String(32), nullable=False, unique=True),
        sa.Column('first_name', sa.Text(), nullable=False),
        sa.Column('last_name', sa.Text(), nullable=False),
        sa.Column('email', sa.String(254), nullable=False, unique=True),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('department', sa.Text(), nullable=False),
        sa.Column('position', sa.String(32), nullable=False),
        sa.Column('date_of_joining', sa.Date(), nullable=False),
        sa.Column('qualifications', sa.JSON(), nullable=False),
        sa.Column('specializations', sa.JSON(), nullable=False),
        sa.Column('research_interests', sa.JSON(), nullable=False),
        sa.Column('publications', sa.JSON(), nullable=False),
        sa.Column('office_hours', sa.JSON(), nullable=False),
        sa.Column('contact_number', sa.String(32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        *_timestamps(),
    )

    # ── Courses Table ─────────────────────────────────────────
    op.create_table(
        'courses',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('course_code', sa.String(32), nullable=False, unique=True),
        sa.Column('course_name', sa.Text(), nullable=False),
        sa.Column('department', sa.Text(), nullable=False),
        sa.Column('credits', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('semester', sa.Integer(), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('schedule', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        sa.Column('syllabus', sa.JSON(), nullable=False),
        sa.Column('assessments', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('capacity >= 1', name='ck_courses_capacity_positive'),
    )

    # ── Course Faculty (composite key: listed at most once) ───
    op.create_table(
        'course_faculty',
        sa.Column('course_id', sa.String(36),
                  sa.ForeignKey('courses.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('faculty_id', sa.String(36),
                  sa.ForeignKey('faculty.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('assigned_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )

    # ── Course Prerequisites ──────────────────────────────────
    op.create_table(
        'course_prerequisites',
        sa.Column('course_id', sa.String(36),
                  sa.ForeignKey('courses.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('prerequisite_id', sa.String(36),
                  sa.ForeignKey('courses.id', ondelete='CASCADE'), primary_key=True),
    )

    # ── Enrollments Table ─────────────────────────────────────
    op.create_table(
        'enrollments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('course_id', sa.String(36),
                  sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.String(36),
                  sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('enrollment_date', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('grade', sa.String(2), nullable=False, server_default='I'),
        sa.Column('attendance_present', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('attendance_total', sa.Integer(), nullable=False, server_default='0'),
        sa.UniqueConstraint('course_id', 'student_id', name='uq_enrollments_course_student'),
    )

    # ── Indexes for common query patterns ─────────────────────
    op.create_index('ix_users_profile', 'users', ['profile_kind', 'profile_id'])
    op.create_index('ix_students_branch_semester', 'students', ['branch', 'semester'])
    op.create_index('ix_students_user_id', 'students', ['user_id'])
    op.create_index('ix_faculty_department', 'faculty', ['department'])
    op.create_index('ix_courses_department_semester', 'courses', ['department', 'semester'])
    op.create_index('ix_enrollments_student_id', 'enrollments', ['student_id'])


def downgrade() -> None:
    op.drop_index('ix_enrollments_student_id', table_name='enrollments')
    op.drop_index('ix_courses_department_semester', table_name='courses')
    op.drop_index('ix_faculty_department', table_name='faculty')
    op.drop_index('ix_students_user_id', table_name='students')
    op.drop_index('ix_students_branch_semester', table_name='students')
    op.drop_index('ix_users_profile', table_name='users')
    op.drop_table('enrollments')
    op.drop_table('course_prerequisites')
    op.drop_table('course_faculty')
    op.drop_table('courses')
    op.drop_table('faculty')
    op.drop_table('students')
    op.drop_table('users')
