# settings/templates.py
# -*- coding: utf-8 -*-
"""
Default text templates for the configuration files written by the installers.

Templates use ``str.format`` placeholders. Templates whose target syntax
contains literal braces (nginx.conf) are written verbatim and take no
placeholders.
"""

NGINX_YUM_REPO_TEMPLATE: str = """\
[nginx-{channel}]
name={name}
baseurl={baseurl}
gpgcheck=1
enabled=1
gpgkey={gpgkey}
{extra}"""

NGINX_SYSTEMD_UNIT_TEMPLATE: str = """\
[Unit]
Description=The NGINX HTTP and reverse proxy server
Documentation=http://nginx.org/en/docs/
After=network.target remote-fs.target nss-lookup.target

[Service]
Type=forking
PIDFile={pid_path}
ExecStartPre={sbin_path} -t
ExecStart={sbin_path}
ExecReload={sbin_path} -s reload
ExecStop=/bin/kill -s QUIT $MAINPID
KillSignal=SIGQUIT
TimeoutStopSec=5
KillMode=mixed
PrivateTmp=true

[Install]
WantedBy=multi-user.target
"""

NGINX_CONF_DEFAULT: str = """\
user nginx;
worker_processes auto;
error_log /var/log/nginx/error.log;
pid /run/nginx.pid;

events {
    worker_connections 1024;
}

http {
    log_format  main  '$remote_addr - $remote_user [$time_local] "$request" '
                      '$status $body_bytes_sent "$http_referer" '
                      '"$http_user_agent" "$http_x_forwarded_for"';

    access_log  /var/log/nginx/access.log  main;

    sendfile            on;
    tcp_nopush          on;
    tcp_nodelay         on;
    keepalive_timeout   65;
    types_hash_max_size 2048;

    include             /etc/nginx/mime.types;
    default_type        application/octet-stream;

    include /etc/nginx/conf.d/*.conf;

    server {
        listen       80 default_server;
        listen       [::]:80 default_server;
        server_name  _;
        root         /usr/share/nginx/html;

        location / {
            root   /usr/share/nginx/html;
            index  index.html index.htm;
        }

        error_page   500 502 503 504  /50x.html;
        location = /50x.html {
            root   /usr/share/nginx/html;
        }
    }
}
"""

NGINX_INDEX_HTML_TEMPLATE: str = """\
<!DOCTYPE html>
<html>
<head>
    <title>Welcome to nginx!</title>
</head>
<body>
    <h1>Welcome to nginx!</h1>
    <p>nginx {version} with HTTP/3 support</p>
    <p>Compiled from source</p>
</body>
</html>
"""

SSHD_CONFIG_TEMPLATE: str = """\
# Hardened OpenSSH server config (testssl.sh A+ rated, Windows 11 compatible)
# Generated: {generated}

# Network
Port {port}
AddressFamily any
ListenAddress 0.0.0.0
ListenAddress ::

# Host keys (only strong ones)
HostKey /etc/ssh/ssh_host_ed25519_key
HostKey /etc/ssh/ssh_host_rsa_key

# Authentication
Protocol 2
PermitRootLogin {permit_root_login}
PubkeyAuthentication yes
PasswordAuthentication {password_authentication}
ChallengeResponseAuthentication no
UsePAM yes

# Limits
LoginGraceTime 30s
MaxAuthTries 3
MaxSessions 2
MaxStartups 10:30:60
ClientAliveInterval 300
ClientAliveCountMax 2

# Key exchange
KexAlgorithms curve25519-sha256,curve25519-sha256@libssh.org,diffie-hellman-group16-sha512,diffie-hellman-group18-sha512,diffie-hellman-group-exchange-sha256

# Ciphers (ChaCha20 + AES-GCM for Windows 11)
Ciphers chacha20-poly1305@openssh.com,aes256-gcm@openssh.com,aes128-gcm@openssh.com

# MACs
MACs hmac-sha2-256-etm@openssh.com,hmac-sha2-512-etm@openssh.com,umac-128-etm@openssh.com

# Host key algorithms (Windows 11 needs RSA)
HostKeyAlgorithms ssh-ed25519,ssh-ed25519-cert-v01@openssh.com,rsa-sha2-512,rsa-sha2-256

# Security hardening
PermitEmptyPasswords no
StrictModes yes
AllowAgentForwarding no
AllowTcpForwarding no
GatewayPorts no
PermitTunnel no
X11Forwarding no
UseDNS no
IgnoreRhosts yes
HostbasedAuthentication no
LogLevel VERBOSE
UsePrivilegeSeparation sandbox
PrintLastLog yes
TCPKeepAlive yes
Compression no

# SFTP
Subsystem sftp {sftp_path}
"""

SSH_CLIENT_CONFIG: str = """\
# Secure SSH client config
Host *
    Protocol 2
    KexAlgorithms curve25519-sha256,curve25519-sha256@libssh.org,diffie-hellman-group16-sha512,diffie-hellman-group18-sha512
    Ciphers chacha20-poly1305@openssh.com,aes256-gcm@openssh.com,aes128-gcm@openssh.com
    MACs hmac-sha2-256-etm@openssh.com,hmac-sha2-512-etm@openssh.com,umac-128-etm@openssh.com
    HostKeyAlgorithms ssh-ed25519,ssh-ed25519-cert-v01@openssh.com,rsa-sha2-512,rsa-sha2-256
    StrictHostKeyChecking ask
    HashKnownHosts yes
    ServerAliveInterval 60
    ServerAliveCountMax 3
"""

OPENSSL_LDCONFIG_TEMPLATE: str = """\
# OpenSSL {version} libraries
{lib_dirs}
"""

ANSIBLE_CFG_TEMPLATE: str = """\
# Global Ansible configuration managed by infra-installer
[defaults]
collections_path = {venv_collections_path}:/usr/share/ansible/collections
"""

KUBERNETES_REPO_TEMPLATE: str = """\
[kubernetes]
name=Kubernetes
baseurl={baseurl}
enabled=1
gpgcheck=1
{repo_gpgcheck}gpgkey={baseurl}repodata/repomd.xml.key
{exclude}"""
