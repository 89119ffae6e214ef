import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Tenant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=100, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="AccessAuditEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("event_type", models.CharField(db_index=True, max_length=50)),
                ("severity", models.CharField(default="info", max_length=20)),
                ("outcome", models.CharField(max_length=20)),
                ("reason", models.CharField(blank=True, max_length=50)),
                ("principal_id", models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ("action", models.CharField(blank=True, max_length=50)),
                ("resource_id", models.CharField(blank=True, max_length=64, null=True)),
                ("resource_kind", models.CharField(blank=True, max_length=20, null=True)),
                ("tenant_id", models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ("correlation_id", models.CharField(blank=True, max_length=64, null=True)),
                ("timestamp", models.DateTimeField(db_index=True)),
                ("details", models.JSONField(blank=True, default=dict)),
            ],
            options={"ordering": ["-timestamp"]},
        ),
        migrations.CreateModel(
            name="Workspace",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="workspaces", to="okr_guard.tenant")),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Team",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("workspace", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="teams", to="okr_guard.workspace")),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Cycle",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("status", models.CharField(choices=[("DRAFT", "Draft"), ("ACTIVE", "Active"), ("LOCKED", "Locked"), ("ARCHIVED", "Archived")], default="DRAFT", max_length=16)),
                ("start_date", models.DateField(blank=True, null=True)),
                ("end_date", models.DateField(blank=True, null=True)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="cycles", to="okr_guard.tenant")),
            ],
            options={"ordering": ["-start_date", "name"]},
        ),
        migrations.CreateModel(
            name="RoleAssignment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("role", models.CharField(choices=[("TENANT_OWNER", "Tenant Owner"), ("TENANT_ADMIN", "Tenant Admin"), ("TENANT_VIEWER", "Tenant Viewer"), ("WORKSPACE_LEAD", "Workspace Lead"), ("WORKSPACE_ADMIN", "Workspace Admin"), ("WORKSPACE_MEMBER", "Workspace Member"), ("TEAM_LEAD", "Team Lead"), ("TEAM_CONTRIBUTOR", "Team Contributor"), ("TEAM_VIEWER", "Team Viewer")], max_length=32)),
                ("scope_type", models.CharField(choices=[("TENANT", "Tenant"), ("WORKSPACE", "Workspace"), ("TEAM", "Team")], max_length=16)),
                ("scope_id", models.CharField(max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("granted_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="role_assignments", to="okr_guard.tenant")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="okr_role_assignments", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "indexes": [models.Index(fields=["tenant", "scope_type"], name="okr_guard_assign_scope_idx")],
                "constraints": [models.UniqueConstraint(fields=("user", "role", "scope_type", "scope_id"), name="okr_guard_unique_role_assignment")],
            },
        ),
        migrations.CreateModel(
            name="Objective",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=500)),
                ("status", models.CharField(default="NOT_STARTED", max_length=32)),
                ("publish_state", models.CharField(choices=[("DRAFT", "Draft"), ("PUBLISHED", "Published")], default="DRAFT", max_length=16)),
                ("visibility_level", models.CharField(choices=[("PUBLIC_TENANT", "PUBLIC_TENANT"), ("PRIVATE", "PRIVATE"), ("EXEC_ONLY", "EXEC_ONLY"), ("MANAGER_CHAIN", "MANAGER_CHAIN"), ("TEAM_ONLY", "TEAM_ONLY"), ("WORKSPACE_ONLY", "WORKSPACE_ONLY")], default="PUBLIC_TENANT", max_length=32)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("cycle", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="objectives", to="okr_guard.cycle")),
                ("owner", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="okr_owned_objectives", to=settings.AUTH_USER_MODEL)),
                ("team", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="objectives", to="okr_guard.team")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="objectives", to="okr_guard.tenant")),
                ("whitelist", models.ManyToManyField(blank=True, related_name="okr_whitelisted_objectives", to=settings.AUTH_USER_MODEL)),
                ("workspace", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="objectives", to="okr_guard.workspace")),
            ],
            options={"ordering": ["-created_at", "-id"]},
        ),
        migrations.CreateModel(
            name="KeyResult",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=500)),
                ("status", models.CharField(default="NOT_STARTED", max_length=32)),
                ("progress", models.FloatField(default=0)),
                ("objective", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="key_results", to="okr_guard.objective")),
                ("owner", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={"ordering": ["id"]},
        ),
        migrations.CreateModel(
            name="Initiative",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=500)),
                ("status", models.CharField(default="NOT_STARTED", max_length=32)),
                ("key_result", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="initiatives", to="okr_guard.keyresult")),
                ("objective", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="initiatives", to="okr_guard.objective")),
                ("owner", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={"ordering": ["id"]},
        ),
    ]
