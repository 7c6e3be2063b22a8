"""Page served to the browser tab that talks to the NIP-07 extension."""

from __future__ import annotations

PAGE_TEMPLATE = r"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>NIP-07 Signer for CLI</title>
  <style>
    body {
      font-family: Arial, sans-serif;
      max-width: 800px;
      margin: 0 auto;
      padding: 20px;
      line-height: 1.6;
      background-color: #121212;
      color: #e0e0e0;
    }
    .status { margin-top: 20px; font-weight: bold; }
    .error { color: #ff6b6b; }
    pre {
      background-color: #2a2a2a;
      padding: 10px;
      border-radius: 5px;
      overflow-x: auto;
    }
    .event {
      border: 1px solid #444;
      padding: 15px;
      margin-bottom: 15px;
      border-radius: 5px;
      background-color: #1e1e1e;
    }
    .event.signed { background-color: #1f3d2f; border-color: #2d6a4f; }
    button {
      background-color: #4CAF50;
      color: white;
      padding: 10px 15px;
      border: none;
      border-radius: 4px;
      cursor: pointer;
      font-size: 16px;
    }
    button:disabled { background-color: #3a3a3a; cursor: not-allowed; }
    .debug { margin-top: 20px; font-size: 0.8em; color: #888; }
    .section { display: none; }
    #idle-section { text-align: center; padding: 50px 0; }
  </style>
</head>
<body>
  <h1>NIP-07 Signer for CLI</h1>

  <div id="idle-section" class="section">
    <p>Waiting for operation...</p>
  </div>

  <div id="public-key-section" class="section">
    <h2>Public Key Retrieval</h2>
    <div id="pk-status" class="status">Checking for NIP-07 extension...</div>
    <pre id="public-key"></pre>
  </div>

  <div id="signing-section" class="section">
    <h3 id="sign-status" class="status">Ready to sign events</h3>
    <button id="sign-all">Sign All Events</button>
    <p>After signing this window will automatically close and signed events sent to the terminal.</p>
    <div id="events-container"></div>
  </div>

  <div id="cipher-section" class="section">
    <h2 id="cipher-title">Encryption</h2>
    <div id="cipher-status" class="status"></div>
    <pre id="cipher-peer"></pre>
    <button id="cipher-run">Approve</button>
  </div>

  <div id="debug" class="debug"></div>

  <script>
    const STATE_POLL_MS = {{ state_poll_ms }};
    const SHUTDOWN_POLL_MS = {{ shutdown_poll_ms }};

    const CIPHER_MODES = {
      nip04Encrypt: { title: 'NIP-04 Encrypt', scheme: 'nip04', method: 'encrypt', field: 'plaintext' },
      nip04Decrypt: { title: 'NIP-04 Decrypt', scheme: 'nip04', method: 'decrypt', field: 'ciphertext' },
      nip44Encrypt: { title: 'NIP-44 Encrypt', scheme: 'nip44', method: 'encrypt', field: 'plaintext' },
      nip44Decrypt: { title: 'NIP-44 Decrypt', scheme: 'nip44', method: 'decrypt', field: 'ciphertext' },
    };

    const debugDiv = document.getElementById('debug');
    const sections = {
      idle: document.getElementById('idle-section'),
      publicKey: document.getElementById('public-key-section'),
      sign: document.getElementById('signing-section'),
      cipher: document.getElementById('cipher-section'),
    };

    function log(message) {
      console.log(message);
      const line = document.createElement('div');
      line.textContent = message;
      debugDiv.appendChild(line);
    }

    function show(name) {
      Object.entries(sections).forEach(([key, el]) => {
        el.style.display = key === name ? 'block' : 'none';
      });
    }

    async function post(path, body) {
      const response = await fetch(path, {
        method: 'POST',
        headers: { 'Content-Type': 'application/json' },
        body: JSON.stringify(body),
      });
      if (!response.ok) {
        const text = await response.text();
        throw new Error(`Server returned error ${response.status}: ${text}`);
      }
    }

    let activeKey = null;

    async function handlePublicKey() {
      const statusDiv = document.getElementById('pk-status');
      try {
        statusDiv.textContent = 'Retrieving public key...';
        const publicKey = await window.nostr.getPublicKey();
        document.getElementById('public-key').textContent = publicKey;
        await post('/public-key', { publicKey });
        statusDiv.textContent = 'Public key sent to server successfully.';
      } catch (error) {
        log(`Error: ${error.message}`);
        statusDiv.innerHTML = '';
        const span = document.createElement('span');
        span.className = 'error';
        span.textContent = `Error: ${error.message}`;
        statusDiv.appendChild(span);
        activeKey = null;
      }
    }

    function handleSigning(events) {
      const statusDiv = document.getElementById('sign-status');
      const container = document.getElementById('events-container');
      const button = document.getElementById('sign-all');
      container.innerHTML = '';
      button.disabled = false;

      if (!events || events.length === 0) {
        statusDiv.textContent = 'No events to sign.';
        button.style.display = 'none';
        return;
      }
      button.style.display = 'inline-block';

      const kindCounts = events.reduce((acc, event) => {
        acc[event.kind] = (acc[event.kind] || 0) + 1;
        return acc;
      }, {});
      statusDiv.textContent = 'Ready to sign: ' + Object.entries(kindCounts)
        .map(([kind, count]) => `kind ${kind} (${count} events)`)
        .join(', ');

      events.forEach((event, index) => {
        const eventDiv = document.createElement('div');
        eventDiv.className = 'event';
        eventDiv.id = `event-${index}`;
        const pre = document.createElement('pre');
        pre.textContent = JSON.stringify(event, null, 2);
        eventDiv.appendChild(pre);
        container.appendChild(eventDiv);
      });

      button.onclick = async () => {
        button.disabled = true;
        try {
          const signedEvents = [];
          for (let i = 0; i < events.length; i++) {
            statusDiv.textContent = `Signing event ${i + 1} of ${events.length}...`;
            const event = events[i];
            if (event.id && event.sig) {
              signedEvents.push(event);
              continue;
            }
            const signed = await window.nostr.signEvent({ ...event });
            signedEvents.push(signed);
            const eventDiv = document.getElementById(`event-${i}`);
            eventDiv.className = 'event signed';
            eventDiv.querySelector('pre').textContent = JSON.stringify(signed, null, 2);
          }
          statusDiv.textContent = 'All events signed! Sending back to server...';
          await post('/signed-events', signedEvents);
          statusDiv.textContent = 'Success! All events are signed and sent to server.';
        } catch (error) {
          log(`Error: ${error.message}`);
          statusDiv.textContent = `Error: ${error.message}`;
          button.disabled = false;
        }
      };
    }

    function handleCipher(mode, data) {
      const spec = CIPHER_MODES[mode];
      const statusDiv = document.getElementById('cipher-status');
      const button = document.getElementById('cipher-run');
      document.getElementById('cipher-title').textContent = spec.title;
      document.getElementById('cipher-peer').textContent = `Peer: ${data.pubkey}`;
      button.disabled = false;

      const api = window.nostr[spec.scheme];
      if (!api || typeof api[spec.method] !== 'function') {
        statusDiv.textContent = `Extension does not support ${spec.title}`;
        post('/encryption-result', { error: `Extension does not support ${spec.title}` })
          .catch((error) => log(`Error: ${error.message}`));
        return;
      }

      statusDiv.textContent = `Ready: ${spec.title}`;
      button.onclick = async () => {
        button.disabled = true;
        try {
          const result = await api[spec.method](data.pubkey, data[spec.field]);
          await post('/encryption-result', { result });
          statusDiv.textContent = 'Result sent to server.';
        } catch (error) {
          log(`Error: ${error.message}`);
          statusDiv.textContent = `Error: ${error.message}`;
          await post('/encryption-result', { error: error.message })
            .catch((err) => log(`Error: ${err.message}`));
        }
      };
    }

    async function checkState() {
      try {
        const response = await fetch('/api/state');
        if (!response.ok) {
          throw new Error(`Server error: ${response.status}`);
        }
        const state = await response.json();
        const key = state.id || state.mode;
        if (key === activeKey) {
          return;
        }
        activeKey = key;

        if (state.mode === 'publicKey') {
          show('publicKey');
          handlePublicKey();
        } else if (state.mode === 'sign') {
          show('sign');
          handleSigning(state.data);
        } else if (CIPHER_MODES[state.mode]) {
          show('cipher');
          handleCipher(state.mode, state.data);
        } else {
          show('idle');
        }
      } catch (error) {
        log(`Error checking state: ${error.message}`);
      }
    }

    async function checkShutdown() {
      try {
        const response = await fetch('/api/shutdown');
        if (!response.ok) {
          throw new Error(`Server error: ${response.status}`);
        }
        const data = await response.json();
        if (data.shouldClose) {
          log('Shutdown signal received. Closing browser window...');
          window.close();
          document.body.innerHTML = '<div style="text-align: center; padding: 50px;"><h2>Server is shutting down</h2><p>You can close this window now.</p></div>';
        }
      } catch (error) {
        log(`Error checking shutdown: ${error.message}. Attempting to close window.`);
        window.close();
      }
    }

    if (!window.nostr) {
      document.body.innerHTML = '<div class="error" style="text-align: center; padding: 50px;"><h2>Error: No Nostr extension detected</h2><p>Please install a NIP-07 compatible browser extension.</p></div>';
    } else {
      log('NIP-07 extension detected');
      show('idle');
      checkState();
      setInterval(checkState, STATE_POLL_MS);
      setInterval(checkShutdown, SHUTDOWN_POLL_MS);
    }
  </script>
</body>
</html>
"""
