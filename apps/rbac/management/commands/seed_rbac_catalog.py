"""
Management command to seed the module registry and the global role catalog.

Creates the Module rows and the platform global roles with their envelopes.
This command is idempotent and safe to re-run: existing rows are updated in
place, and tightening an envelope re-clamps the tenant roles bound to it.
"""
from django.core.management.base import BaseCommand
from django.db import transaction
from apps.rbac.models import Module, GlobalRole, GlobalRolePermission


# Envelope shorthand: (actions, max_scope_view, max_scope_edit) where actions
# uses v=view, c=create, e=edit, d=delete.
FULL = ('vced', 'all', 'all')


class Command(BaseCommand):
    help = 'Seed modules and global roles with their permission envelopes (idempotent)'

    MODULES = [
        # CRM
        {'code': 'contactos', 'name': 'Contactos', 'category': 'crm', 'position': 1},
        {'code': 'solicitudes', 'name': 'Solicitudes', 'category': 'crm', 'position': 2},
        {'code': 'propiedades', 'name': 'Propiedades', 'category': 'crm', 'position': 3},
        {'code': 'actividades', 'name': 'Actividades', 'category': 'crm', 'position': 4},
        {'code': 'propuestas', 'name': 'Propuestas', 'category': 'crm', 'position': 5},

        # Finanzas
        {'code': 'comisiones', 'name': 'Comisiones', 'category': 'finanzas', 'position': 1},

        # Rendimiento
        {'code': 'metas', 'name': 'Metas', 'category': 'rendimiento', 'position': 1},
        {'code': 'reportes', 'name': 'Reportes', 'category': 'rendimiento', 'position': 2},

        # Web
        {'code': 'pagina-web', 'name': 'Página web', 'category': 'web', 'position': 1},

        # Comunicación
        {'code': 'mensajes', 'name': 'Mensajes', 'category': 'comunicacion', 'position': 1},

        # Tools
        {'code': 'university', 'name': 'University', 'category': 'tools', 'position': 1},

        # Admin
        {'code': 'usuarios', 'name': 'Usuarios', 'category': 'admin', 'position': 1},
        {'code': 'equipos', 'name': 'Equipos', 'category': 'admin', 'position': 2},
        {'code': 'oficinas', 'name': 'Oficinas', 'category': 'admin', 'position': 3},
        {'code': 'configuracion', 'name': 'Configuración', 'category': 'admin', 'position': 4},
    ]

    GLOBAL_ROLES = [
        {
            'code': 'administrador',
            'name': 'Administrador',
            'description': 'Full access to every module of the tenant',
            'color': '#ef4444',
            'position': 1,
            'envelope': '*',
        },
        {
            'code': 'gerente',
            'name': 'Gerente',
            'description': 'Runs an office or team: full CRM, read access to finance and admin',
            'color': '#f59e0b',
            'position': 2,
            'envelope': {
                'contactos': ('vced', 'all', 'team'),
                'solicitudes': ('vced', 'all', 'team'),
                'propiedades': ('vced', 'all', 'team'),
                'actividades': ('vced', 'team', 'team'),
                'propuestas': ('vced', 'all', 'team'),
                'comisiones': ('v', 'team', 'own'),
                'metas': ('vce', 'team', 'team'),
                'reportes': ('v', 'all', 'own'),
                'mensajes': ('vce', 'team', 'team'),
                'university': ('v', 'all', 'own'),
                'usuarios': ('v', 'team', 'own'),
                'equipos': ('vce', 'team', 'team'),
                'oficinas': ('v', 'all', 'own'),
            },
        },
        {
            'code': 'asesor',
            'name': 'Asesor',
            'description': 'Sales advisor working their own pipeline',
            'color': '#667eea',
            'position': 3,
            'envelope': {
                'contactos': ('vce', 'team', 'own'),
                'solicitudes': ('vce', 'own', 'own'),
                'propiedades': ('vce', 'team', 'own'),
                'actividades': ('vced', 'own', 'own'),
                'propuestas': ('vce', 'own', 'own'),
                'comisiones': ('v', 'own', 'own'),
                'metas': ('v', 'own', 'own'),
                'reportes': ('v', 'own', 'own'),
                'mensajes': ('vc', 'own', 'own'),
                'university': ('v', 'all', 'own'),
            },
        },
        {
            'code': 'asistente',
            'name': 'Asistente',
            'description': 'Back-office support for a team',
            'color': '#10b981',
            'position': 4,
            'envelope': {
                'contactos': ('vc', 'team', 'own'),
                'actividades': ('vce', 'team', 'own'),
                'propiedades': ('v', 'team', 'own'),
                'university': ('v', 'all', 'own'),
            },
        },
    ]

    @staticmethod
    def envelope_fields(shorthand):
        actions, max_scope_view, max_scope_edit = shorthand
        return {
            'can_view': 'v' in actions,
            'can_create': 'c' in actions,
            'can_edit': 'e' in actions,
            'can_delete': 'd' in actions,
            'max_scope_view': max_scope_view,
            'max_scope_edit': max_scope_edit,
        }

    def _sync(self, model, lookup, values):
        """get_or_create plus field-by-field update; returns 'created', 'updated' or 'unchanged'."""
        obj, created = model.objects.get_or_create(defaults=values, **lookup)
        if created:
            return obj, 'created'
        changed = [field for field, value in values.items() if getattr(obj, field) != value]
        if not changed:
            return obj, 'unchanged'
        for field in changed:
            setattr(obj, field, values[field])
        obj.save()
        return obj, 'updated'

    def _report(self, outcome, label):
        if outcome == 'created':
            self.stdout.write(self.style.SUCCESS(f'✓ Created: {label}'))
        elif outcome == 'updated':
            self.stdout.write(self.style.WARNING(f'↻ Updated: {label}'))
        else:
            self.stdout.write(self.style.HTTP_INFO(f'  Exists: {label}'))

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write('Seeding modules...\n')
        modules = {}
        for data in self.MODULES:
            values = {k: v for k, v in data.items() if k != 'code'}
            module, outcome = self._sync(Module, {'code': data['code']}, values)
            modules[module.code] = module
            self._report(outcome, f'module {module.code}')

        self.stdout.write('\nSeeding global roles...\n')
        for data in self.GLOBAL_ROLES:
            values = {k: v for k, v in data.items() if k not in ('code', 'envelope')}
            role, outcome = self._sync(GlobalRole, {'code': data['code']}, values)
            self._report(outcome, f'global role {role.code}')

            if data['envelope'] == '*':
                envelope = {code: FULL for code in modules}
            else:
                envelope = data['envelope']

            for module_code, shorthand in envelope.items():
                _, outcome = self._sync(
                    GlobalRolePermission,
                    {'global_role': role, 'module': modules[module_code]},
                    self.envelope_fields(shorthand),
                )
                if outcome != 'unchanged':
                    self._report(outcome, f'  {role.code} / {module_code}')

        # Display summary
        self.stdout.write('\n' + '=' * 70)
        self.stdout.write('Global roles:')
        self.stdout.write('=' * 70)
        for role in GlobalRole.objects.order_by('position'):
            count = role.envelope_entries.count()
            self.stdout.write(f'  • {role.code:<20} {role.name:<20} {count} module(s)')

        self.stdout.write(self.style.SUCCESS(
            f'\n✓ Seeding complete: {Module.objects.count()} modules, '
            f'{GlobalRole.objects.count()} global roles'
        ))
