from flask import render_template_string, request

from .exceptions import OwnerRequiredError


def register_dashboard_routes(app):
    """Register dashboard routes to the Flask app."""

    settings = app.config['MAILSBE_SETTINGS']

    @app.route('/dashboard')
    def dashboard():
        """Main dashboard page."""
        owner = request.headers.get(settings.owner_header)
        try:
            emails = app.dashboard.list_emails(owner)
        except OwnerRequiredError:
            return render_template_string(SIGN_IN_HTML), 401

        summary = {
            'total': len(emails),
            'seen': sum(1 for email in emails if email.seen),
        }
        summary['unseen'] = summary['total'] - summary['seen']

        return render_template_string(
            DASHBOARD_HTML,
            emails=emails,
            summary=summary,
            owner=owner,
        )


SIGN_IN_HTML = '''
<!DOCTYPE html>
<html>
<head><title>Mailsbe</title><meta charset="UTF-8"></head>
<body><p>Sign in to view your tracked emails.</p></body>
</html>
'''

DASHBOARD_HTML = '''
<!DOCTYPE html>
<html>
<head>
    <title>Mailsbe - Email Tracking Dashboard</title>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <style>
        body { font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; margin: 20px; color: #333; }
        table { width: 100%; border-collapse: collapse; }
        th, td { padding: 8px; border-bottom: 1px solid #eee; text-align: left; }
        .seen { color: #2e7d32; }
        .unseen { color: #999; }
        #toast { position: fixed; bottom: 20px; right: 20px; padding: 10px 16px;
                 background: #c62828; color: white; border-radius: 4px; display: none; }
        #toast.ok { background: #2e7d32; }
        pre { white-space: pre-wrap; word-break: break-all; background: #f5f5f5; padding: 8px; }
    </style>
</head>
<body>
    <h1>Email Tracking Dashboard</h1>
    <p>{{ summary.total }} tracked, {{ summary.seen }} seen, {{ summary.unseen }} unseen</p>

    <form id="new-email">
        <input type="email" name="recipient_address" placeholder="Receiver's email" required>
        <input type="text" name="description" placeholder="Description">
        <button type="submit">New Email</button>
    </form>
    <pre id="snippet" hidden></pre>

    {% if emails %}
    <table>
        <thead>
            <tr><th>Email</th><th>Description</th><th>Status</th><th>Seen at</th><th>Created</th><th></th></tr>
        </thead>
        <tbody>
            {% for email in emails %}
            <tr>
                <td>{{ email.recipient_address }}</td>
                <td>{{ email.description }}</td>
                {% if email.seen %}
                <td class="seen">Seen</td>
                <td>{{ email.seen_at.strftime('%Y-%m-%d %H:%M') }} UTC</td>
                {% else %}
                <td class="unseen">Not seen</td>
                <td>N/A</td>
                {% endif %}
                <td>{{ email.created_at.strftime('%Y-%m-%d %H:%M') }} UTC</td>
                <td><button data-delete="{{ email.id }}">Delete</button></td>
            </tr>
            {% endfor %}
        </tbody>
    </table>
    {% else %}
    <p>No emails tracked yet. Create your first tracking email with "New Email".</p>
    {% endif %}

    <div id="toast"></div>

    <script>
        function toast(message, ok) {
            var el = document.getElementById('toast');
            el.textContent = message;
            el.className = ok ? 'ok' : '';
            el.style.display = 'block';
            setTimeout(function () { el.style.display = 'none'; }, 4000);
        }

        function call(method, url, body) {
            return fetch(url, {
                method: method,
                headers: { 'Content-Type': 'application/json' },
                body: body ? JSON.stringify(body) : undefined
            }).then(function (response) {
                return response.json().then(function (data) {
                    if (!response.ok) { throw new Error(data.error || response.statusText); }
                    return data;
                });
            });
        }

        document.getElementById('new-email').addEventListener('submit', function (e) {
            e.preventDefault();
            var form = e.target;
            call('POST', '/api/emails', {
                recipient_address: form.recipient_address.value,
                description: form.description.value
            }).then(function (created) {
                var snippet = document.getElementById('snippet');
                snippet.textContent = created.snippet;
                snippet.hidden = false;
                toast('Email tracking created successfully', true);
            }).catch(function (err) { toast('Unable to add email: ' + err.message); });
        });

        document.querySelectorAll('[data-delete]').forEach(function (button) {
            button.addEventListener('click', function () {
                call('DELETE', '/api/emails/' + button.dataset.delete)
                    .catch(function (err) { toast('Unable to delete email: ' + err.message); });
            });
        });

        // Reload on every change pushed by the server, unless a fresh snippet is still on screen
        var source = new EventSource('/api/emails/stream');
        source.addEventListener('change', function () {
            if (document.getElementById('snippet').hidden) { location.reload(); }
        });
        window.addEventListener('beforeunload', function () { source.close(); });
    </script>
</body>
</html>
'''
