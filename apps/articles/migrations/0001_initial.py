import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Article',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier (UUID)', primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, editable=False, help_text='Timestamp when record was created', verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when record was last updated', verbose_name='Updated At')),
                ('title', models.CharField(help_text='Article title', max_length=500, verbose_name='Title')),
                ('excerpt', models.TextField(blank=True, help_text='Short standfirst shown in listings', verbose_name='Excerpt')),
                ('content', models.TextField(blank=True, help_text='Article body (HTML)', verbose_name='Content')),
                ('content_type', models.CharField(choices=[('standard', 'Article'), ('summary', 'News Summary')], default='standard', help_text='Fixed at creation; summaries are always premium and unsectioned', max_length=20, verbose_name='Content Type')),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('pending', 'Pending Review'), ('approved', 'Approved'), ('rejected', 'Rejected'), ('published', 'Published'), ('archived', 'Archived')], db_index=True, default='draft', help_text='Lifecycle position', max_length=20, verbose_name='Status')),
                ('version', models.PositiveIntegerField(default=0, help_text='Incremented on every workflow write (optimistic locking)', verbose_name='Version')),
                ('rejection_reason', models.TextField(blank=True, help_text='Set only while the article is rejected', verbose_name='Rejection Reason')),
                ('validated_at', models.DateTimeField(blank=True, help_text='When the article was last approved or rejected', null=True, verbose_name='Validated At')),
                ('section', models.CharField(blank=True, choices=[('essential', 'Essential'), ('general_feed', 'General Feed'), ('focus', 'Focus'), ('chronicle', 'Chronicle')], db_index=True, help_text='Destination section (standard articles only)', max_length=20, null=True, verbose_name='Section')),
                ('is_premium', models.BooleanField(default=False, help_text='Full content requires an active subscription', verbose_name='Premium')),
                ('is_featured_home', models.BooleanField(default=False, help_text='Temporary homepage prominence', verbose_name='Featured on Home')),
                ('featured_home_expires_at', models.DateTimeField(blank=True, help_text='When the homepage feature lapses', null=True, verbose_name='Featured Until')),
                ('is_archive', models.BooleanField(default=False, help_text='Listed in the archive view (independent of status)', verbose_name='In Archive View')),
                ('scheduled_publish_at', models.DateTimeField(blank=True, db_index=True, help_text='Pending deferred publication time', null=True, verbose_name='Scheduled Publish At')),
                ('scheduled_placement', models.JSONField(blank=True, help_text='Placement captured when the deferred publication was requested', null=True, verbose_name='Scheduled Placement')),
                ('published_at', models.DateTimeField(blank=True, db_index=True, help_text='When the content became visible', null=True, verbose_name='Published At')),
                ('views', models.PositiveIntegerField(default=0, verbose_name='Views')),
                ('likes', models.PositiveIntegerField(default=0, verbose_name='Likes')),
                ('author', models.ForeignKey(help_text='Watcher who drafted the article', on_delete=django.db.models.deletion.PROTECT, related_name='articles', to=settings.AUTH_USER_MODEL, verbose_name='Author')),
                ('validated_by', models.ForeignKey(blank=True, help_text='Moderator who last approved or rejected the article', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Validated By')),
            ],
            options={
                'verbose_name': 'Article',
                'verbose_name_plural': 'Articles',
                'db_table': 'articles',
                'ordering': ['-published_at', '-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'scheduled_publish_at'], name='article_status_sched_idx'),
                    models.Index(fields=['status', 'section'], name='article_status_section_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ArticleTransition',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier (UUID)', primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, editable=False, help_text='Timestamp when record was created', verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when record was last updated', verbose_name='Updated At')),
                ('event', models.CharField(db_index=True, help_text='Workflow action (submit, approve, publish, ...)', max_length=30, verbose_name='Event')),
                ('from_status', models.CharField(max_length=20, verbose_name='From Status')),
                ('to_status', models.CharField(max_length=20, verbose_name='To Status')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Metadata')),
                ('actor', models.ForeignKey(blank=True, help_text='Who triggered the action (empty for the scheduler)', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Actor')),
                ('article', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transitions', to='articles.article', verbose_name='Article')),
            ],
            options={
                'verbose_name': 'Article Transition',
                'verbose_name_plural': 'Article Transitions',
                'db_table': 'article_transitions',
                'ordering': ['-created_at'],
            },
        ),
    ]
