# Matching, mock server, provider states, verification and publishing services
