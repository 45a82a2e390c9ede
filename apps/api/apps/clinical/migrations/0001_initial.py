# Initial migration for clinical app: patient records, versioned sessions,
# transfers and the audit trail

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('authz', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('full_name', models.CharField(max_length=255)),
                ('cpf', models.CharField(blank=True, help_text='National id', max_length=14, null=True, unique=True)),
                ('birth_date', models.DateField(blank=True, null=True)),
                ('gender', models.CharField(blank=True, max_length=50, null=True)),
                ('marital_status', models.CharField(blank=True, max_length=50, null=True)),
                ('profession', models.CharField(blank=True, max_length=255, null=True)),
                ('address', models.TextField(blank=True, null=True)),
                ('phone', models.CharField(max_length=50)),
                ('email', models.EmailField(blank=True, max_length=254, null=True)),
                ('emergency_contact_name', models.CharField(blank=True, max_length=255, null=True)),
                ('emergency_contact_phone', models.CharField(blank=True, max_length=50, null=True)),
                ('insurance_provider', models.CharField(blank=True, max_length=255, null=True)),
                ('legal_guardian_name', models.CharField(blank=True, max_length=255, null=True)),
                ('legal_guardian_cpf', models.CharField(blank=True, max_length=14, null=True)),
                ('status', models.CharField(
                    choices=[('active', 'Active'), ('inactive', 'Inactive'), ('discharged', 'Discharged')],
                    default='active',
                    max_length=20
                )),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner_psychologist', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='owned_patients',
                    to='authz.psychologist'
                )),
                ('created_by_user', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='created_patients',
                    to=settings.AUTH_USER_MODEL
                )),
            ],
            options={
                'verbose_name': 'Patient',
                'verbose_name_plural': 'Patients',
                'db_table': 'patients',
                'indexes': [
                    models.Index(fields=['full_name'], name='idx_patient_full_name'),
                    models.Index(fields=['status'], name='idx_patient_status'),
                    models.Index(fields=['owner_psychologist'], name='idx_patient_owner'),
                    models.Index(fields=['created_by_user'], name='idx_patient_created_by'),
                ],
            },
        ),
        migrations.CreateModel(
            name='MedicalRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('chief_complaint', models.TextField(blank=True, null=True)),
                ('personal_history', models.TextField(blank=True, null=True)),
                ('family_history', models.TextField(blank=True, null=True)),
                ('current_medications', models.BooleanField(default=False)),
                ('medication_details', models.TextField(blank=True, null=True)),
                ('diagnosis', models.TextField(blank=True, null=True)),
                ('icd10_code', models.CharField(blank=True, max_length=20, null=True)),
                ('therapeutic_objectives', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.OneToOneField(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='medical_record',
                    to='clinical.patient'
                )),
                ('psychologist', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='medical_records',
                    to='authz.psychologist'
                )),
            ],
            options={
                'verbose_name': 'Medical Record',
                'verbose_name_plural': 'Medical Records',
                'db_table': 'medical_records',
            },
        ),
        migrations.CreateModel(
            name='ClinicalSession',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('session_date', models.DateField()),
                ('session_time', models.TimeField()),
                ('duration_minutes', models.PositiveIntegerField(default=50)),
                ('session_type', models.CharField(
                    choices=[('in_person', 'In Person'), ('online', 'Online')],
                    default='in_person',
                    max_length=20
                )),
                ('status', models.CharField(
                    choices=[('completed', 'Completed'), ('cancelled', 'Cancelled'), ('no_show', 'No Show')],
                    default='completed',
                    max_length=20
                )),
                ('subjective', models.TextField(blank=True, null=True)),
                ('objective', models.TextField(blank=True, null=True)),
                ('assessment', models.TextField(blank=True, null=True)),
                ('plan', models.TextField(blank=True, null=True)),
                ('evolution_notes', models.TextField()),
                ('clinical_observations', models.TextField(blank=True, null=True)),
                ('next_steps', models.TextField(blank=True, null=True)),
                ('version', models.PositiveIntegerField(default=1)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='clinical_sessions',
                    to='clinical.patient'
                )),
                ('psychologist', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='clinical_sessions',
                    to='authz.psychologist'
                )),
                ('edited_by', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='edited_sessions',
                    to=settings.AUTH_USER_MODEL
                )),
            ],
            options={
                'verbose_name': 'Clinical Session',
                'verbose_name_plural': 'Clinical Sessions',
                'db_table': 'clinical_sessions',
                'indexes': [
                    models.Index(fields=['patient'], name='idx_session_patient'),
                    models.Index(fields=['session_date'], name='idx_session_date'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SessionHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('version', models.PositiveIntegerField()),
                ('evolution_notes', models.TextField(blank=True, null=True)),
                ('clinical_observations', models.TextField(blank=True, null=True)),
                ('snapshot', models.JSONField(
                    default=dict,
                    encoder=DjangoJSONEncoder,
                    help_text='Editable fields of the superseded version'
                )),
                ('edited_at', models.DateTimeField(help_text='When the superseded version was written')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('session', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='history',
                    to='clinical.clinicalsession'
                )),
                ('edited_by', models.ForeignKey(
                    blank=True,
                    help_text='Author of the superseded version',
                    null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='session_history_entries',
                    to=settings.AUTH_USER_MODEL
                )),
            ],
            options={
                'verbose_name': 'Session History',
                'verbose_name_plural': 'Session History',
                'db_table': 'session_history',
                'ordering': ['-version'],
                'constraints': [
                    models.UniqueConstraint(fields=('session', 'version'), name='uniq_session_history_version'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PatientDocument',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('document_type', models.CharField(
                    choices=[
                        ('consent', 'Consent'),
                        ('contract', 'Contract'),
                        ('report', 'Report'),
                        ('exam', 'Exam'),
                        ('other', 'Other'),
                    ],
                    default='other',
                    max_length=20
                )),
                ('document_name', models.CharField(max_length=255)),
                ('file', models.FileField(upload_to='documents/%Y/%m/')),
                ('file_size', models.PositiveBigIntegerField()),
                ('mime_type', models.CharField(max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('patient', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='documents',
                    to='clinical.patient'
                )),
                ('uploaded_by', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='uploaded_documents',
                    to=settings.AUTH_USER_MODEL
                )),
            ],
            options={
                'verbose_name': 'Patient Document',
                'verbose_name_plural': 'Patient Documents',
                'db_table': 'patient_documents',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['patient'], name='idx_document_patient'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PsychologicalAssessment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('assessment_name', models.CharField(max_length=255)),
                ('assessment_date', models.DateField()),
                ('results', models.TextField(blank=True, null=True)),
                ('observations', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='assessments',
                    to='clinical.patient'
                )),
                ('psychologist', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='assessments',
                    to='authz.psychologist'
                )),
            ],
            options={
                'verbose_name': 'Psychological Assessment',
                'verbose_name_plural': 'Psychological Assessments',
                'db_table': 'psychological_assessments',
                'ordering': ['-assessment_date', '-id'],
            },
        ),
        migrations.CreateModel(
            name='PatientTransfer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('reason', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('patient', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='transfers',
                    to='clinical.patient'
                )),
                ('from_psychologist', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='transfers_out',
                    to='authz.psychologist'
                )),
                ('to_psychologist', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='transfers_in',
                    to='authz.psychologist'
                )),
                ('transferred_by_admin', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='patient_transfers',
                    to=settings.AUTH_USER_MODEL
                )),
            ],
            options={
                'verbose_name': 'Patient Transfer',
                'verbose_name_plural': 'Patient Transfers',
                'db_table': 'patient_transfers',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['patient'], name='idx_transfer_patient'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(
                    choices=[
                        ('view', 'View'),
                        ('create', 'Create'),
                        ('update', 'Update'),
                        ('delete', 'Delete'),
                        ('archive', 'Archive'),
                        ('upload', 'Upload'),
                        ('download', 'Download'),
                        ('access_denied', 'Access Denied'),
                        ('transfer_denied', 'Transfer Denied'),
                        ('patient_transfer', 'Patient Transfer'),
                    ],
                    max_length=30
                )),
                ('resource_type', models.CharField(
                    choices=[
                        ('patient', 'Patient'),
                        ('patient_record', 'Patient Record'),
                        ('medical_record', 'Medical Record'),
                        ('clinical_session', 'Clinical Session'),
                        ('document', 'Document'),
                        ('assessment', 'Assessment'),
                    ],
                    max_length=30
                )),
                ('resource_id', models.BigIntegerField(blank=True, null=True)),
                ('patient_id', models.BigIntegerField(blank=True, null=True)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.CharField(blank=True, max_length=255, null=True)),
                ('details', models.JSONField(blank=True, default=dict, encoder=DjangoJSONEncoder)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='audit_logs',
                    to=settings.AUTH_USER_MODEL
                )),
            ],
            options={
                'verbose_name': 'Audit Log',
                'verbose_name_plural': 'Audit Logs',
                'db_table': 'audit_logs',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['created_at'], name='idx_audit_created_at'),
                    models.Index(fields=['user'], name='idx_audit_user'),
                    models.Index(fields=['patient_id'], name='idx_audit_patient'),
                    models.Index(fields=['action'], name='idx_audit_action'),
                ],
            },
        ),
    ]
