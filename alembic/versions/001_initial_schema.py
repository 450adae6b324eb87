"""001 – Initial schema: all tables and indexes.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00

Enum columns are stored as VARCHAR (``native_enum=False`` on the models), so
no PostgreSQL enum types are created. Default roles and permissions are seeded
at application startup rather than here.
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Auth ──────────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE users (
            id                        UUID PRIMARY KEY,
            username                  VARCHAR(50)  NOT NULL UNIQUE,
            email                     VARCHAR(255) NOT NULL UNIQUE,
            password_hash             VARCHAR(255) NOT NULL,
            first_name                VARCHAR(100),
            last_name                 VARCHAR(100),
            enabled                   BOOLEAN NOT NULL DEFAULT TRUE,
            account_non_locked        BOOLEAN NOT NULL DEFAULT TRUE,
            failed_login_attempts     INTEGER NOT NULL DEFAULT 0,
            locked_until              TIMESTAMPTZ,
            email_verified            BOOLEAN NOT NULL DEFAULT FALSE,
            email_verification_token  VARCHAR(255),
            password_reset_token      VARCHAR(255),
            password_reset_expires_at TIMESTAMPTZ,
            last_login_at             TIMESTAMPTZ,
            employee_id               UUID UNIQUE,  -- FK added after employees table
            created_at                TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at                TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE roles (
            id          UUID PRIMARY KEY,
            name        VARCHAR(50) NOT NULL UNIQUE,
            description VARCHAR(255),
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE permissions (
            id          UUID PRIMARY KEY,
            name        VARCHAR(100) NOT NULL UNIQUE,
            description VARCHAR(255),
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE user_roles (
            user_id UUID REFERENCES users(id) ON DELETE CASCADE,
            role_id UUID REFERENCES roles(id) ON DELETE CASCADE,
            PRIMARY KEY (user_id, role_id)
        )
    """)

    op.execute("""
        CREATE TABLE role_permissions (
            role_id       UUID REFERENCES roles(id) ON DELETE CASCADE,
            permission_id UUID REFERENCES permissions(id) ON DELETE CASCADE,
            PRIMARY KEY (role_id, permission_id)
        )
    """)

    op.execute("""
        CREATE TABLE user_sessions (
            id                 UUID PRIMARY KEY,
            user_id            UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            token_hash         VARCHAR(128) NOT NULL,
            refresh_token_hash VARCHAR(128),
            ip_address         INET,
            user_agent         TEXT,
            expires_at         TIMESTAMPTZ NOT NULL,
            is_revoked         BOOLEAN NOT NULL DEFAULT FALSE,
            created_at         TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_user_sessions_token_hash ON user_sessions(token_hash)")
    op.execute(
        "CREATE INDEX ix_user_sessions_refresh_token_hash ON user_sessions(refresh_token_hash)"
    )

    # ── Organisation ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE departments (
            id                   UUID PRIMARY KEY,
            name                 VARCHAR(100) NOT NULL,
            code                 VARCHAR(20)  NOT NULL UNIQUE,
            description          TEXT,
            location             VARCHAR(200),
            budget               NUMERIC(15, 2),
            cost_center          VARCHAR(50),
            email                VARCHAR(100),
            phone                VARCHAR(20),
            status               VARCHAR(20) NOT NULL DEFAULT 'active',
            manager_id           UUID,  -- FK added after employees table
            parent_department_id UUID REFERENCES departments(id) ON DELETE SET NULL,
            created_at           TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at           TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE pay_grades (
            id          UUID PRIMARY KEY,
            grade_code  VARCHAR(20)  NOT NULL UNIQUE,
            name        VARCHAR(100) NOT NULL,
            description TEXT,
            min_salary  NUMERIC(12, 2) NOT NULL,
            max_salary  NUMERIC(12, 2) NOT NULL,
            grade_level INTEGER NOT NULL,
            status      VARCHAR(20) NOT NULL,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE positions (
            id                       UUID PRIMARY KEY,
            title                    VARCHAR(100) NOT NULL,
            description              TEXT,
            department_id            UUID REFERENCES departments(id) ON DELETE SET NULL,
            level                    VARCHAR(20) NOT NULL,
            status                   VARCHAR(20) NOT NULL,
            min_salary               NUMERIC(12, 2),
            max_salary               NUMERIC(12, 2),
            pay_grade_id             UUID REFERENCES pay_grades(id) ON DELETE SET NULL,
            required_qualifications  TEXT,
            preferred_qualifications TEXT,
            required_skills          TEXT,
            min_experience_years     INTEGER,
            max_experience_years     INTEGER,
            reports_to_id            UUID REFERENCES positions(id) ON DELETE SET NULL,
            number_of_openings       INTEGER NOT NULL DEFAULT 0,
            total_headcount          INTEGER NOT NULL DEFAULT 1,
            created_at               TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at               TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # ── Employees ─────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id                             UUID PRIMARY KEY,
            employee_id                    VARCHAR(20)  NOT NULL UNIQUE,
            first_name                     VARCHAR(50)  NOT NULL,
            last_name                      VARCHAR(50)  NOT NULL,
            email                          VARCHAR(100) NOT NULL UNIQUE,
            phone                          VARCHAR(20),
            birth_date                     DATE,
            gender                         VARCHAR(10),
            address                        VARCHAR(200),
            city                           VARCHAR(50),
            state                          VARCHAR(50),
            postal_code                    VARCHAR(20),
            country                        VARCHAR(50),
            job_title                      VARCHAR(100) NOT NULL,
            department_id                  UUID REFERENCES departments(id) ON DELETE SET NULL,
            position_id                    UUID REFERENCES positions(id) ON DELETE SET NULL,
            manager_id                     UUID REFERENCES employees(id) ON DELETE SET NULL,
            hire_date                      DATE NOT NULL,
            termination_date               DATE,
            salary                         NUMERIC(12, 2),
            pay_grade_id                   UUID REFERENCES pay_grades(id) ON DELETE SET NULL,
            employment_type                VARCHAR(20) NOT NULL,
            status                         VARCHAR(20) NOT NULL,
            emergency_contact_name         VARCHAR(100),
            emergency_contact_phone        VARCHAR(20),
            emergency_contact_relationship VARCHAR(50),
            ssn                            VARCHAR(11),
            notes                          TEXT,
            profile_picture_url            VARCHAR(500),
            created_by                     UUID REFERENCES users(id) ON DELETE SET NULL,
            updated_by                     UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at                     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at                     TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_employees_department_id ON employees(department_id)")
    op.execute("CREATE INDEX ix_employees_manager_id ON employees(manager_id)")
    op.execute("CREATE INDEX ix_employees_status ON employees(status)")

    # Deferred FKs now that employees exists
    op.execute("""
        ALTER TABLE departments
            ADD CONSTRAINT fk_department_manager
            FOREIGN KEY (manager_id) REFERENCES employees(id) ON DELETE SET NULL
    """)
    op.execute("""
        ALTER TABLE users
            ADD CONSTRAINT fk_user_employee
            FOREIGN KEY (employee_id) REFERENCES employees(id) ON DELETE SET NULL
    """)

    op.execute("""
        CREATE TABLE employee_status_history (
            id              UUID PRIMARY KEY,
            employee_id     UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            previous_status VARCHAR(20),
            new_status      VARCHAR(20) NOT NULL,
            reason          VARCHAR(500),
            notes           TEXT,
            effective_date  DATE NOT NULL,
            changed_by      VARCHAR(100),
            changed_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_employee_status_history_employee_id "
        "ON employee_status_history(employee_id)"
    )
    op.execute(
        "CREATE INDEX ix_employee_status_history_changed_at "
        "ON employee_status_history(changed_at)"
    )

    op.execute("""
        CREATE TABLE employee_position_history (
            id              UUID PRIMARY KEY,
            employee_id     UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            position_id     UUID NOT NULL REFERENCES positions(id) ON DELETE CASCADE,
            start_date      DATE NOT NULL,
            end_date        DATE,
            salary_at_start NUMERIC(12, 2),
            department_id   UUID REFERENCES departments(id) ON DELETE SET NULL,
            notes           TEXT,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_employee_position_history_employee_id "
        "ON employee_position_history(employee_id)"
    )
    op.execute(
        "CREATE INDEX ix_employee_position_history_position_id "
        "ON employee_position_history(position_id)"
    )

    # ── Leave ─────────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id                     UUID PRIMARY KEY,
            name                   VARCHAR(100) NOT NULL UNIQUE,
            description            TEXT,
            days_allowed_per_year  INTEGER NOT NULL,
            carry_forward          BOOLEAN NOT NULL DEFAULT FALSE,
            max_carry_forward_days INTEGER NOT NULL DEFAULT 0,
            min_notice_days        INTEGER NOT NULL DEFAULT 0,
            max_consecutive_days   INTEGER,
            requires_approval      BOOLEAN NOT NULL DEFAULT TRUE,
            active                 BOOLEAN NOT NULL DEFAULT TRUE,
            created_at             TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at             TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE leave_balances (
            id                 UUID PRIMARY KEY,
            employee_id        UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            leave_type_id      UUID NOT NULL REFERENCES leave_types(id) ON DELETE CASCADE,
            year               INTEGER NOT NULL,
            allocated_days     NUMERIC(5, 1) NOT NULL DEFAULT 0,
            used_days          NUMERIC(5, 1) NOT NULL DEFAULT 0,
            pending_days       NUMERIC(5, 1) NOT NULL DEFAULT 0,
            carry_forward_days NUMERIC(5, 1) NOT NULL DEFAULT 0,
            created_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_leave_balance_employee_type_year UNIQUE (employee_id, leave_type_id, year)
        )
    """)
    op.execute("CREATE INDEX ix_leave_balances_employee_id ON leave_balances(employee_id)")

    op.execute("""
        CREATE TABLE leave_requests (
            id                UUID PRIMARY KEY,
            employee_id       UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            leave_type_id     UUID NOT NULL REFERENCES leave_types(id) ON DELETE RESTRICT,
            start_date        DATE NOT NULL,
            end_date          DATE NOT NULL,
            total_days        NUMERIC(5, 1) NOT NULL,
            reason            TEXT,
            half_day          BOOLEAN NOT NULL DEFAULT FALSE,
            status            VARCHAR(20) NOT NULL DEFAULT 'pending',
            approver_id       UUID REFERENCES employees(id) ON DELETE SET NULL,
            approved_at       TIMESTAMPTZ,
            approval_comments TEXT,
            rejection_reason  TEXT,
            created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_requests_employee_dates "
        "ON leave_requests(employee_id, start_date, end_date)"
    )
    op.execute("CREATE INDEX ix_leave_requests_status ON leave_requests(status)")

    op.execute("""
        CREATE TABLE leave_documents (
            id               UUID PRIMARY KEY,
            leave_request_id UUID NOT NULL REFERENCES leave_requests(id) ON DELETE CASCADE,
            document_name    VARCHAR(255) NOT NULL,
            file_path        VARCHAR(500) NOT NULL,
            file_type        VARCHAR(100) NOT NULL,
            file_size        BIGINT NOT NULL,
            description      VARCHAR(500),
            uploaded_by      UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_leave_documents_leave_request_id ON leave_documents(leave_request_id)")
    op.execute("CREATE INDEX ix_leave_documents_file_type ON leave_documents(file_type)")
    op.execute("CREATE INDEX ix_leave_documents_uploaded_by ON leave_documents(uploaded_by)")

    # ── Attendance ────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE time_attendance (
            id                      UUID PRIMARY KEY,
            employee_id             UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            work_date               DATE NOT NULL,
            clock_in_time           TIMESTAMPTZ,
            clock_out_time          TIMESTAMPTZ,
            scheduled_start_time    TIMESTAMPTZ,
            scheduled_end_time      TIMESTAMPTZ,
            status                  VARCHAR(20) NOT NULL,
            total_hours             NUMERIC(5, 2) NOT NULL DEFAULT 0,
            regular_hours           NUMERIC(5, 2) NOT NULL DEFAULT 0,
            overtime_hours          NUMERIC(5, 2) NOT NULL DEFAULT 0,
            break_minutes           INTEGER NOT NULL DEFAULT 0,
            late_minutes            INTEGER NOT NULL DEFAULT 0,
            early_departure_minutes INTEGER NOT NULL DEFAULT 0,
            notes                   VARCHAR(500),
            work_location           VARCHAR(200),
            remote_work             BOOLEAN NOT NULL DEFAULT FALSE,
            ip_address              VARCHAR(45),
            created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_attendance_employee_date UNIQUE (employee_id, work_date)
        )
    """)
    op.execute("CREATE INDEX ix_time_attendance_employee_id ON time_attendance(employee_id)")
    op.execute("CREATE INDEX ix_time_attendance_work_date ON time_attendance(work_date)")

    op.execute("""
        CREATE TABLE attendance_breaks (
            id               UUID PRIMARY KEY,
            attendance_id    UUID NOT NULL REFERENCES time_attendance(id) ON DELETE CASCADE,
            break_type       VARCHAR(20) NOT NULL,
            start_time       TIMESTAMPTZ NOT NULL,
            end_time         TIMESTAMPTZ,
            duration_minutes INTEGER,
            notes            VARCHAR(500),
            created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_attendance_breaks_attendance_id ON attendance_breaks(attendance_id)"
    )

    op.execute("""
        CREATE TABLE attendance_corrections (
            id                  UUID PRIMARY KEY,
            attendance_id       UUID NOT NULL REFERENCES time_attendance(id) ON DELETE CASCADE,
            employee_id         UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            requested_by        UUID REFERENCES users(id) ON DELETE SET NULL,
            reviewed_by         UUID REFERENCES users(id) ON DELETE SET NULL,
            correction_type     VARCHAR(30),
            original_clock_in   TIMESTAMPTZ,
            original_clock_out  TIMESTAMPTZ,
            requested_clock_in  TIMESTAMPTZ,
            requested_clock_out TIMESTAMPTZ,
            reason              TEXT NOT NULL,
            status              VARCHAR(20) NOT NULL,
            review_notes        TEXT,
            reviewed_at         TIMESTAMPTZ,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_attendance_corrections_employee_id ON attendance_corrections(employee_id)"
    )
    op.execute("CREATE INDEX ix_attendance_corrections_status ON attendance_corrections(status)")

    # ── Payroll ───────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE salary_history (
            id              UUID PRIMARY KEY,
            employee_id     UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            previous_salary NUMERIC(12, 2),
            new_salary      NUMERIC(12, 2) NOT NULL,
            effective_date  DATE NOT NULL,
            change_reason   VARCHAR(30) NOT NULL,
            notes           TEXT,
            approved_by     VARCHAR(100),
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_salary_history_employee_id ON salary_history(employee_id)")

    op.execute("""
        CREATE TABLE bonuses (
            id                       UUID PRIMARY KEY,
            employee_id              UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            bonus_type               VARCHAR(20) NOT NULL,
            amount                   NUMERIC(12, 2) NOT NULL,
            description              TEXT,
            award_date               DATE NOT NULL,
            payment_date             DATE,
            performance_period_start DATE,
            performance_period_end   DATE,
            status                   VARCHAR(20) NOT NULL,
            approved_by              VARCHAR(100),
            notes                    TEXT,
            created_at               TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at               TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_bonuses_employee_id ON bonuses(employee_id)")

    op.execute("""
        CREATE TABLE deductions (
            id                    UUID PRIMARY KEY,
            employee_id           UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            deduction_type        VARCHAR(30) NOT NULL,
            amount                NUMERIC(12, 2),
            percentage            NUMERIC(5, 2),
            description           TEXT,
            effective_date        DATE NOT NULL,
            end_date              DATE,
            status                VARCHAR(20) NOT NULL,
            is_pre_tax            BOOLEAN NOT NULL DEFAULT FALSE,
            is_mandatory          BOOLEAN NOT NULL DEFAULT FALSE,
            frequency             VARCHAR(50),
            employer_contribution NUMERIC(12, 2),
            annual_limit          NUMERIC(12, 2),
            year_to_date_amount   NUMERIC(12, 2) NOT NULL DEFAULT 0,
            created_at            TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at            TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_deductions_employee_id ON deductions(employee_id)")

    # ── Performance ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE performance_reviews (
            id                    UUID PRIMARY KEY,
            employee_id           UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            reviewer_id           UUID REFERENCES employees(id) ON DELETE SET NULL,
            review_period_start   DATE NOT NULL,
            review_period_end     DATE NOT NULL,
            due_date              DATE,
            status                VARCHAR(20) NOT NULL,
            overall_rating        VARCHAR(30),
            strengths             TEXT,
            areas_for_improvement TEXT,
            comments              TEXT,
            completed_date        DATE,
            approved_by           VARCHAR(100),
            approved_at           TIMESTAMPTZ,
            created_at            TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at            TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_performance_reviews_employee_id ON performance_reviews(employee_id)"
    )
    op.execute(
        "CREATE INDEX ix_performance_reviews_reviewer_id ON performance_reviews(reviewer_id)"
    )
    op.execute("CREATE INDEX ix_performance_reviews_status ON performance_reviews(status)")

    op.execute("""
        CREATE TABLE goals (
            id             UUID PRIMARY KEY,
            employee_id    UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            review_id      UUID REFERENCES performance_reviews(id) ON DELETE SET NULL,
            title          VARCHAR(200) NOT NULL,
            description    TEXT,
            status         VARCHAR(20) NOT NULL,
            priority       VARCHAR(20) NOT NULL,
            progress       INTEGER NOT NULL DEFAULT 0,
            start_date     DATE,
            target_date    DATE,
            completed_date DATE,
            created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_goal_progress_range CHECK (progress >= 0 AND progress <= 100)
        )
    """)
    op.execute("CREATE INDEX ix_goals_employee_id ON goals(employee_id)")
    op.execute("CREATE INDEX ix_goals_status ON goals(status)")

    # ── Documents & files ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE document_types (
            id                 UUID PRIMARY KEY,
            name               VARCHAR(100) NOT NULL UNIQUE,
            description        VARCHAR(500),
            allowed_file_types VARCHAR(255),
            max_file_size_mb   INTEGER NOT NULL DEFAULT 10,
            requires_approval  BOOLEAN NOT NULL DEFAULT FALSE,
            active             BOOLEAN NOT NULL DEFAULT TRUE,
            created_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at         TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE document_categories (
            id          UUID PRIMARY KEY,
            name        VARCHAR(100) NOT NULL UNIQUE,
            description VARCHAR(500),
            color       VARCHAR(50),
            icon        VARCHAR(50),
            active      BOOLEAN NOT NULL DEFAULT TRUE,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE documents (
            id               UUID PRIMARY KEY,
            employee_id      UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            document_type_id UUID NOT NULL REFERENCES document_types(id) ON DELETE RESTRICT,
            category_id      UUID REFERENCES document_categories(id) ON DELETE SET NULL,
            name             VARCHAR(255) NOT NULL,
            file_path        VARCHAR(500),
            mime_type        VARCHAR(100),
            file_size        BIGINT,
            description      VARCHAR(1000),
            expiry_date      DATE,
            confidential     BOOLEAN NOT NULL DEFAULT FALSE,
            tags             VARCHAR(500),
            version          INTEGER NOT NULL DEFAULT 1,
            approval_status  VARCHAR(20) NOT NULL,
            approved_by      UUID REFERENCES users(id) ON DELETE SET NULL,
            approved_at      TIMESTAMPTZ,
            approval_notes   VARCHAR(1000),
            rejected_by      UUID REFERENCES users(id) ON DELETE SET NULL,
            rejected_at      TIMESTAMPTZ,
            rejection_notes  VARCHAR(1000),
            uploaded_by      UUID REFERENCES users(id) ON DELETE SET NULL,
            active           BOOLEAN NOT NULL DEFAULT TRUE,
            created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_documents_employee_id ON documents(employee_id)")
    op.execute("CREATE INDEX ix_documents_document_type_id ON documents(document_type_id)")
    op.execute("CREATE INDEX ix_documents_expiry_date ON documents(expiry_date)")
    op.execute("CREATE INDEX ix_documents_approval_status ON documents(approval_status)")

    op.execute("""
        CREATE TABLE files (
            id                UUID PRIMARY KEY,
            filename          VARCHAR(255) NOT NULL UNIQUE,
            original_filename VARCHAR(255) NOT NULL,
            file_path         VARCHAR(500) NOT NULL,
            mime_type         VARCHAR(100),
            file_size         BIGINT NOT NULL,
            file_type         VARCHAR(30) NOT NULL,
            status            VARCHAR(20) NOT NULL,
            description       VARCHAR(500),
            tags              VARCHAR(500),
            is_public         BOOLEAN NOT NULL DEFAULT FALSE,
            checksum          VARCHAR(64),
            download_count    INTEGER NOT NULL DEFAULT 0,
            last_accessed_at  TIMESTAMPTZ,
            expires_at        TIMESTAMPTZ,
            employee_id       UUID REFERENCES employees(id) ON DELETE SET NULL,
            uploaded_by       UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_files_file_type ON files(file_type)")
    op.execute("CREATE INDEX ix_files_status ON files(status)")
    op.execute("CREATE INDEX ix_files_checksum ON files(checksum)")
    op.execute("CREATE INDEX ix_files_employee_id ON files(employee_id)")

    # ── Notifications ─────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id                  UUID PRIMARY KEY,
            recipient_id        UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            sender_id           UUID REFERENCES users(id) ON DELETE SET NULL,
            notification_type   VARCHAR(30) NOT NULL,
            status              VARCHAR(20) NOT NULL,
            priority            VARCHAR(10) NOT NULL,
            subject             VARCHAR(200) NOT NULL,
            message             TEXT NOT NULL,
            related_entity_type VARCHAR(50),
            related_entity_id   VARCHAR(64),
            action_url          VARCHAR(500),
            read_at             TIMESTAMPTZ,
            email_sent          BOOLEAN NOT NULL DEFAULT FALSE,
            email_sent_at       TIMESTAMPTZ,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_notifications_recipient_status ON notifications(recipient_id, status)"
    )

    op.execute("""
        CREATE TABLE notification_templates (
            id                UUID PRIMARY KEY,
            name              VARCHAR(100) NOT NULL UNIQUE,
            notification_type VARCHAR(30) NOT NULL,
            subject_template  VARCHAR(200) NOT NULL,
            message_template  TEXT NOT NULL,
            email_template    TEXT,
            active            BOOLEAN NOT NULL DEFAULT TRUE,
            system_template   BOOLEAN NOT NULL DEFAULT FALSE,
            description       VARCHAR(500),
            variables         JSONB,
            created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE notification_preferences (
            id                UUID PRIMARY KEY,
            user_id           UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            notification_type VARCHAR(30) NOT NULL,
            in_app_enabled    BOOLEAN NOT NULL DEFAULT TRUE,
            email_enabled     BOOLEAN NOT NULL DEFAULT TRUE,
            sms_enabled       BOOLEAN NOT NULL DEFAULT FALSE,
            push_enabled      BOOLEAN NOT NULL DEFAULT FALSE,
            quiet_hours_start VARCHAR(5),
            quiet_hours_end   VARCHAR(5),
            weekend_delivery  BOOLEAN NOT NULL DEFAULT TRUE,
            frequency_limit   INTEGER,
            created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_notification_pref_user_type UNIQUE (user_id, notification_type)
        )
    """)

    # ── Audit & reports ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_logs (
            id             UUID PRIMARY KEY,
            user_id        UUID REFERENCES users(id) ON DELETE SET NULL,
            username       VARCHAR(100) NOT NULL DEFAULT 'SYSTEM',
            action         VARCHAR(50) NOT NULL,
            entity_type    VARCHAR(50),
            entity_id      VARCHAR(64),
            description    TEXT,
            old_values     JSONB,
            new_values     JSONB,
            ip_address     INET,
            user_agent     TEXT,
            request_url    VARCHAR(500),
            http_method    VARCHAR(10),
            success        BOOLEAN NOT NULL DEFAULT TRUE,
            error_message  TEXT,
            security_event BOOLEAN NOT NULL DEFAULT FALSE,
            created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_logs_user_id ON audit_logs(user_id)")
    op.execute("CREATE INDEX ix_audit_logs_entity ON audit_logs(entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_logs_created_at ON audit_logs(created_at)")
    op.execute("CREATE INDEX ix_audit_logs_action ON audit_logs(action)")

    op.execute("""
        CREATE TABLE reports (
            id              UUID PRIMARY KEY,
            report_type     VARCHAR(20) NOT NULL,
            title           VARCHAR(200) NOT NULL,
            description     VARCHAR(1000),
            status          VARCHAR(20) NOT NULL DEFAULT 'pending',
            parameters      JSONB,
            data            JSONB,
            file_format     VARCHAR(10) NOT NULL DEFAULT 'JSON',
            error_message   TEXT,
            created_by      VARCHAR(100) NOT NULL,
            scheduled       BOOLEAN NOT NULL DEFAULT FALSE,
            cron_expression VARCHAR(100),
            generated_at    TIMESTAMPTZ,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_reports_report_type ON reports(report_type)")
    op.execute("CREATE INDEX ix_reports_status ON reports(status)")
    op.execute("CREATE INDEX ix_reports_created_by ON reports(created_by)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop deferred FKs before the tables they connect
    op.execute("ALTER TABLE users DROP CONSTRAINT IF EXISTS fk_user_employee")
    op.execute("ALTER TABLE departments DROP CONSTRAINT IF EXISTS fk_department_manager")

    # Reverse dependency order
    tables = [
        "reports",
        "audit_logs",
        "notification_preferences",
        "notification_templates",
        "notifications",
        "files",
        "documents",
        "document_categories",
        "document_types",
        "goals",
        "performance_reviews",
        "deductions",
        "bonuses",
        "salary_history",
        "attendance_corrections",
        "attendance_breaks",
        "time_attendance",
        "leave_documents",
        "leave_requests",
        "leave_balances",
        "leave_types",
        "employee_position_history",
        "employee_status_history",
        "employees",
        "positions",
        "pay_grades",
        "departments",
        "user_sessions",
        "role_permissions",
        "user_roles",
        "permissions",
        "roles",
        "users",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")
